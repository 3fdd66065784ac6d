"""Engine state repository with fire-and-forget writes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from src.core.database import DatabaseManager
from src.domain.analytics.models.analytics_models import EngineState
from src.infrastructure.persistence.state_serializer import (
    deserialize_state,
    serialize_state,
)

logger = logging.getLogger(__name__)


class EngineStateRepository:
    """Loads and saves the engine state for one learner.

    Saves serialize on the caller's thread and write on a single background
    worker, so callers never wait on storage. Write failures are logged and
    swallowed; the in-memory state stays authoritative.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        user_id: str = "default",
        history_limit: int = 50,
    ) -> None:
        """Initialize state repository.

        Args:
            db_manager: Database manager instance
            user_id: Learner whose state is stored
            history_limit: Session records kept in storage
        """
        self.db_manager = db_manager
        self.user_id = user_id
        self.history_limit = history_limit
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="adaptive-state"
        )
        self._pending: list[Future[None]] = []
        self._lock = threading.Lock()

    def load(self) -> EngineState:
        """Load the stored state, or defaults when nothing usable is stored."""
        try:
            documents = self.db_manager.get_all_states(self.user_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load engine state for {self.user_id}")
            return EngineState()

        if not documents:
            logger.debug(f"No stored engine state for {self.user_id}")
            return EngineState()
        state = deserialize_state(documents)
        logger.info(
            f"Loaded engine state for {self.user_id}: "
            f"{len(state.performance_history)} sessions, "
            f"{len(state.insights)} insights"
        )
        return state

    def save(self, state: EngineState) -> Future[None]:
        """Schedule a write of ``state``.

        Args:
            state: Current engine state

        Returns:
            Future completing when the write has finished (or failed)
        """
        documents = serialize_state(state, self.history_limit)
        future = self._executor.submit(self._write, documents)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def _write(self, documents: dict[str, Any]) -> None:
        try:
            self.db_manager.set_states(self.user_id, documents)
        except Exception:
            logger.exception(f"Failed to persist engine state for {self.user_id}")

    def flush(self, timeout: float | None = None) -> None:
        """Wait for all scheduled writes to finish."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def clear(self) -> None:
        """Delete the stored state after pending writes have landed."""
        self.flush()
        try:
            self.db_manager.clear_states(self.user_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to clear engine state for {self.user_id}")

    def close(self) -> None:
        """Flush pending writes and stop the background worker."""
        self.flush()
        self._executor.shutdown(wait=True)
