"""Database management module for the adaptive learning engine."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.models import AdaptiveStateEntry
from src.domain.shared.models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and the adaptive state table."""

    def __init__(self, db_path: str | Path = "data/adaptive.db") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with proper SQLite configuration
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, _: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._create_tables()

    def _create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        Yields:
            Database session.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_all_states(self, user_id: str) -> dict[str, Any]:
        """Get every stored state document for a learner.

        Entries that aren't valid JSON are skipped with a warning.

        Args:
            user_id: Learner id.

        Returns:
            Mapping of state key to decoded value.
        """
        states: dict[str, Any] = {}
        with self.get_session() as session:
            entries = session.query(AdaptiveStateEntry).filter_by(user_id=user_id).all()
            for entry in entries:
                try:
                    states[entry.state_key] = json.loads(entry.state_value)
                except json.JSONDecodeError:
                    logger.warning(
                        f"Skipping stored state {entry.state_key!r}: invalid JSON"
                    )
        return states

    def set_states(self, user_id: str, values: Mapping[str, Any]) -> None:
        """Upsert several state documents in one transaction.

        Args:
            user_id: Learner id.
            values: Mapping of state key to JSON-serializable value.
        """
        with self.get_session() as session:
            existing = {
                entry.state_key: entry
                for entry in session.query(AdaptiveStateEntry)
                .filter(AdaptiveStateEntry.user_id == user_id)
                .filter(AdaptiveStateEntry.state_key.in_(list(values)))
                .all()
            }
            now = datetime.now(UTC).replace(tzinfo=None)
            for key, value in values.items():
                entry = existing.get(key)
                if entry is not None:
                    entry.state_value = json.dumps(value)
                    entry.updated_at = now
                else:
                    session.add(
                        AdaptiveStateEntry(
                            user_id=user_id,
                            state_key=key,
                            state_value=json.dumps(value),
                        )
                    )

    def clear_states(self, user_id: str) -> int:
        """Delete all state documents of a learner.

        Args:
            user_id: Learner id.

        Returns:
            Number of deleted entries.
        """
        with self.get_session() as session:
            deleted = (
                session.query(AdaptiveStateEntry).filter_by(user_id=user_id).delete()
            )
        logger.info(f"Cleared {deleted} state entries for {user_id}")
        return deleted

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
