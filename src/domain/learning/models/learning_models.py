"""Learning context models: read-only snapshots supplied by collaborators.

Card storage, SM-2 scheduling and mistake tracking live outside the engine.
They hand the engine validated snapshots of their current state; nothing in
this module is ever mutated by the analytics services.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.domain.shared.models import MistakeType, StudyDirection, StudyMode


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware datetime (naive means local time)."""
    if value.tzinfo is None:
        return value.astimezone()
    return value


class SnapshotModel(BaseModel):
    """Base for collaborator snapshots."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class Flashcard(SnapshotModel):
    """Vocabulary card as stored by the card collaborator."""

    id: str = Field(..., min_length=1, description="Unique card ID")
    front: str = Field(..., description="English side")
    back: str = Field(..., description="Catalan side")
    category: str = Field(..., min_length=1)
    subcategory: str | None = None
    gender: str | None = None
    notes: str = ""

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: str | None) -> str | None:
        """Validate grammatical gender."""
        if v is not None and v not in ("masculine", "feminine"):
            raise ValueError("gender must be 'masculine' or 'feminine'")
        return v


class CardProgress(SnapshotModel):
    """SM-2 progress of one card in one direction."""

    card_id: str
    direction: StudyDirection
    ease_factor: float = Field(default=2.5, ge=1.3)
    interval: int = Field(default=0, ge=0, description="Days until next review")
    repetitions: int = Field(default=0, ge=0)
    next_review_date: datetime
    last_review_date: datetime | None = None
    total_reviews: int = Field(default=0, ge=0)
    correct_reviews: int = Field(default=0, ge=0)
    last_quality: int | None = Field(default=None, ge=0, le=5)

    @field_validator("next_review_date", "last_review_date")
    @classmethod
    def validate_aware(cls, v: datetime | None) -> datetime | None:
        """Normalise review dates to aware datetimes."""
        return ensure_aware(v) if v is not None else None

    @model_validator(mode="after")
    def validate_counts(self) -> CardProgress:
        """Correct reviews can't exceed total reviews."""
        if self.correct_reviews > self.total_reviews:
            raise ValueError("correct_reviews cannot exceed total_reviews")
        return self

    @property
    def accuracy(self) -> float | None:
        """Fraction of correct reviews, or None if never reviewed."""
        if self.total_reviews == 0:
            return None
        return self.correct_reviews / self.total_reviews

    def is_new(self) -> bool:
        return self.repetitions == 0

    def is_due(self, now: datetime) -> bool:
        return self.next_review_date <= now


class MistakeRecord(SnapshotModel):
    """A single wrong answer."""

    card_id: str
    direction: StudyDirection
    timestamp: datetime
    error_type: MistakeType
    user_answer: str = ""
    correct_answer: str = ""

    @field_validator("timestamp")
    @classmethod
    def validate_aware(cls, v: datetime) -> datetime:
        """Normalise mistake timestamps to aware datetimes."""
        return ensure_aware(v)


class ConfusionPair(SnapshotModel):
    """Two words the learner repeatedly mixes up."""

    word1: str
    word2: str
    confusion_count: int = Field(..., ge=0)
    last_confused: datetime | None = None

    @field_validator("last_confused")
    @classmethod
    def validate_aware(cls, v: datetime | None) -> datetime | None:
        """Normalise the last confusion timestamp."""
        return ensure_aware(v) if v is not None else None


class CategorySessionStats(SnapshotModel):
    """Per-category slice of one session."""

    count: int = Field(default=0, ge=0)
    accuracy: float = Field(default=0.0, ge=0, le=100)


class SessionMetrics(SnapshotModel):
    """Raw outcome of a completed study session."""

    duration_ms: int = Field(..., ge=0)
    cards_reviewed: int = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=100, description="Percent correct")
    average_quality: float = Field(default=3.0, ge=0, le=5)
    average_response_time_ms: float = Field(default=0.0, ge=0)
    mode: StudyMode
    category_breakdown: dict[str, CategorySessionStats] = Field(default_factory=dict)
    mistake_types: dict[MistakeType, int] = Field(default_factory=dict)
    planned_cards: int | None = Field(default=None, ge=0)
    new_cards_mastered: int = Field(default=0, ge=0)


class UserProgressSnapshot(SnapshotModel):
    """Streak data from the gamification collaborator."""

    current_streak: int = Field(default=0, ge=0)
    last_study_date: datetime | None = None

    @field_validator("last_study_date")
    @classmethod
    def validate_aware(cls, v: datetime | None) -> datetime | None:
        """Normalise the last study date."""
        return ensure_aware(v) if v is not None else None


class LearnerSnapshot(SnapshotModel):
    """Everything the analysis pass reads, bundled for file-based input."""

    cards: list[Flashcard] = Field(default_factory=list)
    progress: list[CardProgress] = Field(default_factory=list)
    mistakes: list[MistakeRecord] = Field(default_factory=list)
    confusion_pairs: list[ConfusionPair] = Field(default_factory=list)


ProgressIndex = dict[tuple[str, StudyDirection], CardProgress]


def index_progress(progress: Iterable[CardProgress]) -> ProgressIndex:
    """Index progress entries by (card id, direction)."""
    return {(p.card_id, p.direction): p for p in progress}
