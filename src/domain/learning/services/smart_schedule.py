"""Interval suggestions layered on top of the external SM-2 scheduler.

The SM-2 scheduler stays authoritative: these functions only suggest
multipliers for its interval and an ordering for cards that are already due.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime, timedelta

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig, time_of_day
from src.domain.analytics.models.analytics_models import (
    CardSchedulePriority,
    CategoryPerformance,
    LearningStyleProfile,
    SmartScheduleFactors,
    TimePerformance,
)
from src.domain.analytics.services.classify_learning_style import (
    LearningStyleClassifier,
)
from src.domain.learning.models.learning_models import (
    CardProgress,
    ConfusionPair,
    Flashcard,
    MistakeRecord,
)
from src.domain.shared.models import SPECIAL_CHARACTERS, MistakeType

logger = logging.getLogger(__name__)

TYPING_ERROR_TYPES = (MistakeType.ACCENT, MistakeType.SPELLING)


class SmartScheduler:
    """Suggests interval multipliers and due-card ordering."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize smart scheduler.

        Args:
            config: Engine configuration
        """
        self.config = config
        self.classifier = LearningStyleClassifier(config)

    def calculate_factors(
        self,
        card: Flashcard,
        base_interval: int,
        now: datetime,
        time_performances: Sequence[TimePerformance] = (),
        categories: Sequence[CategoryPerformance] = (),
        mistakes: Sequence[MistakeRecord] = (),
        confusion_pairs: Sequence[ConfusionPair] = (),
        cards_reviewed_this_session: int = 0,
    ) -> SmartScheduleFactors:
        """Compute the multipliers for one card's next interval.

        Args:
            card: Card just reviewed
            base_interval: Interval in days proposed by the SM-2 scheduler
            now: Review time (local wall clock)
            time_performances: Time bucket aggregates
            categories: Category aggregates
            mistakes: Mistake history
            confusion_pairs: Confusion pairs
            cards_reviewed_this_session: Cards reviewed so far this session

        Returns:
            Scheduling factors
        """
        scheduling = self.config.scheduling
        weak = self.config.weak_spot

        time_multiplier = 1.0
        bucket = time_of_day(now, self.config.time_buckets)
        current = next((t for t in time_performances if t.time_of_day == bucket), None)
        if current is not None and time_performances:
            best = max(time_performances, key=lambda t: t.optimal_score)
            if best.average_accuracy > 0:
                span = scheduling.time_multiplier_max - scheduling.time_multiplier_min
                time_multiplier = min(
                    scheduling.time_multiplier_max,
                    scheduling.time_multiplier_min
                    + current.average_accuracy / best.average_accuracy * span,
                )

        category_multiplier = 1.0
        category = next(
            (
                c
                for c in categories
                if c.category == card.category and c.subcategory is None
            ),
            None,
        )
        if category is not None and category.reviewed_cards > 0:
            ease_span = weak.ease_factor_ceiling - weak.ease_factor_floor
            position = (category.average_ease_factor - weak.ease_factor_floor) / ease_span
            category_multiplier = scheduling.category_multiplier_hard + position * (
                scheduling.category_multiplier_easy - scheduling.category_multiplier_hard
            )

        recent = self._recent_mistakes(card.id, mistakes, now)
        mistake_multiplier = max(
            1 - scheduling.mistake_penalty_max,
            1 - len(recent) * scheduling.mistake_penalty_per_recent,
        )

        back = card.back.strip().lower()
        confused = any(
            back in (pair.word1.strip().lower(), pair.word2.strip().lower())
            for pair in confusion_pairs
        )
        interference = 1 - scheduling.interference_penalty if confused else 1.0

        fatigue = 1.0
        over = cards_reviewed_this_session - scheduling.fatigue_threshold_cards
        if over > 0:
            fatigue = max(
                1 - scheduling.fatigue_penalty_max,
                1 - over * scheduling.fatigue_penalty,
            )

        return SmartScheduleFactors(
            base_interval=base_interval,
            time_of_day_multiplier=time_multiplier,
            category_difficulty_multiplier=category_multiplier,
            mistake_recency_multiplier=mistake_multiplier,
            interference_factor=interference,
            fatigue_adjustment=fatigue,
        )

    @staticmethod
    def apply(factors: SmartScheduleFactors) -> int:
        """Adjusted interval in days; never below one day."""
        adjusted = (
            factors.base_interval
            * factors.time_of_day_multiplier
            * factors.category_difficulty_multiplier
            * factors.mistake_recency_multiplier
            * factors.interference_factor
            * factors.fatigue_adjustment
        )
        return max(1, math.floor(adjusted + 0.5))

    def prioritize_due_cards(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        mistakes: Sequence[MistakeRecord],
        style_profile: LearningStyleProfile,
        difficulty_level: int,
        now: datetime,
    ) -> list[CardSchedulePriority]:
        """Order due card-directions, most urgent first.

        Base priority grows with days overdue. It is boosted for low ease
        factors and recent mistakes.

        Args:
            cards: Flashcard snapshot
            progress: Progress snapshot
            mistakes: Mistake history
            style_profile: Current learning style profile
            difficulty_level: Current global difficulty level
            now: Reference time

        Returns:
            Priorities sorted by adjusted priority, highest first
        """
        scheduling = self.config.scheduling
        weak = self.config.weak_spot
        cards_by_id = {card.id: card for card in cards}
        ease_span = weak.ease_factor_ceiling - weak.ease_factor_floor

        priorities = []
        for entry in progress:
            card = cards_by_id.get(entry.card_id)
            if card is None or not entry.is_due(now):
                continue

            overdue_days = (now - entry.next_review_date).total_seconds() / 86400
            base = 1 + max(0.0, overdue_days)
            ease_deficit = max(
                0.0, min(1.0, (weak.ease_factor_ceiling - entry.ease_factor) / ease_span)
            )
            recent = self._recent_mistakes(card.id, mistakes, now)
            mistake_boost = min(
                scheduling.mistake_penalty_max,
                len(recent) * scheduling.mistake_penalty_per_recent,
            )
            needs_typing = any(c in SPECIAL_CHARACTERS for c in card.back) or any(
                m.error_type in TYPING_ERROR_TYPES for m in recent
            )
            priorities.append(
                CardSchedulePriority(
                    card_id=card.id,
                    direction=entry.direction,
                    base_priority=base,
                    adjusted_priority=base * (1 + ease_deficit) * (1 + mistake_boost),
                    recommended_mode=self.classifier.recommend_mode(
                        style_profile, difficulty_level, needs_typing
                    ),
                )
            )

        priorities.sort(
            key=lambda p: (-p.adjusted_priority, p.card_id, p.direction.value)
        )
        return priorities

    def _recent_mistakes(
        self, card_id: str, mistakes: Sequence[MistakeRecord], now: datetime
    ) -> list[MistakeRecord]:
        window = timedelta(days=self.config.scheduling.recent_mistake_window_days)
        return [
            m for m in mistakes if m.card_id == card_id and now - m.timestamp < window
        ]
