"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.domain.analytics.models.analytics_models import (  # noqa: E402
    SessionPerformanceRecord,
)
from src.domain.learning.models.learning_models import (  # noqa: E402
    CardProgress,
    CategorySessionStats,
    Flashcard,
    MistakeRecord,
)
from src.domain.shared.models import (  # noqa: E402
    MistakeType,
    StudyDirection,
    StudyMode,
    TimeOfDay,
)

# Fixed offset keeps wall-clock hours deterministic regardless of host timezone
TZ = timezone(timedelta(hours=1))


@pytest.fixture
def now() -> datetime:
    """Fixed reference time: a Wednesday at 10:00 local time."""
    return datetime(2024, 3, 13, 10, 0, tzinfo=TZ)


@pytest.fixture
def make_card() -> Callable[..., Flashcard]:
    """Factory for flashcards."""

    def factory(
        card_id: str,
        category: str = "Verbs",
        front: str | None = None,
        back: str | None = None,
        **kwargs,
    ) -> Flashcard:
        return Flashcard(
            id=card_id,
            front=front or f"front {card_id}",
            back=back or f"back {card_id}",
            category=category,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_progress(now: datetime) -> Callable[..., CardProgress]:
    """Factory for card progress entries."""

    def factory(
        card_id: str,
        direction: StudyDirection = StudyDirection.ENGLISH_TO_CATALAN,
        total: int = 10,
        correct: int = 8,
        ease: float = 2.5,
        interval: int = 3,
        repetitions: int = 3,
        due_in_days: float = 1,
        **kwargs,
    ) -> CardProgress:
        return CardProgress(
            card_id=card_id,
            direction=direction,
            ease_factor=ease,
            interval=interval,
            repetitions=repetitions,
            next_review_date=now + timedelta(days=due_in_days),
            last_review_date=now - timedelta(days=1) if total else None,
            total_reviews=total,
            correct_reviews=correct,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_mistake(now: datetime) -> Callable[..., MistakeRecord]:
    """Factory for mistake records."""

    def factory(
        card_id: str,
        error_type: MistakeType = MistakeType.WRONG,
        days_ago: float = 1,
        direction: StudyDirection = StudyDirection.ENGLISH_TO_CATALAN,
    ) -> MistakeRecord:
        return MistakeRecord(
            card_id=card_id,
            direction=direction,
            timestamp=now - timedelta(days=days_ago),
            error_type=error_type,
        )

    return factory


@pytest.fixture
def make_record(now: datetime) -> Callable[..., SessionPerformanceRecord]:
    """Factory for session performance records."""
    counter = {"value": 0}

    def factory(
        accuracy: float = 80.0,
        days_ago: float = 0,
        mode: StudyMode = StudyMode.FLIP,
        response_time_ms: float = 4000.0,
        cards: int = 20,
        quality: float = 4.0,
        time_of_day: TimeOfDay = TimeOfDay.MORNING,
        categories: dict[str, tuple[int, float]] | None = None,
        planned: int | None = None,
        new_mastered: int = 0,
    ) -> SessionPerformanceRecord:
        counter["value"] += 1
        return SessionPerformanceRecord(
            session_id=f"session-{counter['value']}",
            timestamp=now - timedelta(days=days_ago),
            time_of_day=time_of_day,
            mode=mode,
            duration_ms=cards * 10000,
            cards_reviewed=cards,
            accuracy=accuracy,
            average_quality=quality,
            average_response_time_ms=response_time_ms,
            category_breakdown={
                name: CategorySessionStats(count=count, accuracy=acc)
                for name, (count, acc) in (categories or {}).items()
            },
            planned_cards=planned,
            new_cards_mastered=new_mastered,
        )

    return factory
