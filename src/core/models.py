"""Database models for persisted adaptive learning state."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from src.domain.shared.models import Base


class AdaptiveStateEntry(Base):
    """One JSON document of engine state for one learner."""

    __tablename__ = "adaptive_state"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    state_key = Column(String(100), nullable=False)
    state_value = Column(Text, nullable=False)  # JSON serialized value
    created_at = Column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None)
    )
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC).replace(tzinfo=None),
        onupdate=lambda: datetime.now(UTC).replace(tzinfo=None),
    )

    __table_args__ = (UniqueConstraint("user_id", "state_key"),)
