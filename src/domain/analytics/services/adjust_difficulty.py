"""Adaptive difficulty control.

The global level moves toward a raw target derived from recent accuracy,
response time and streak signals, smoothed so a single good or bad run
can't swing it by more than a fraction of the gap.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    CategoryPerformance,
    DifficultyAdjustment,
    DifficultyProfile,
    SessionPerformanceRecord,
    TriggerMetrics,
)
from src.domain.shared.models import DifficultyTrend

logger = logging.getLogger(__name__)

MANUAL_REASON = "manual"


class DifficultyController:
    """Moves the global and per-category difficulty levels."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize difficulty controller.

        Args:
            config: Engine configuration
        """
        self.config = config

    def clamp_level(self, level: float) -> int:
        """Clamp into the configured level range and round half up.

        Raises:
            ValueError: If ``level`` is NaN
        """
        if math.isnan(level):
            raise ValueError("Difficulty level must not be NaN")
        difficulty = self.config.difficulty
        bounded = max(
            difficulty.min_difficulty_level,
            min(difficulty.max_difficulty_level, level),
        )
        return math.floor(bounded + 0.5)

    def smooth(self, current: int, target: int) -> int:
        """Move ``current`` a fraction of the way toward ``target``."""
        factor = self.config.difficulty.smoothing_factor
        return self.clamp_level(current + factor * (target - current))

    def check_and_adjust(
        self,
        profile: DifficultyProfile,
        history: Sequence[SessionPerformanceRecord],
        perfect_streak: int,
        now: datetime,
    ) -> DifficultyProfile:
        """Re-evaluate the global level from the most recent sessions.

        Args:
            profile: Current difficulty profile
            history: Session history (oldest first)
            perfect_streak: Consecutive correct answers in the current run
            now: Adjustment time

        Returns:
            Updated profile, or ``profile`` itself when nothing changes
        """
        difficulty = self.config.difficulty
        if len(history) < difficulty.min_sessions_for_adjustment:
            logger.debug(
                f"Skipping difficulty check: {len(history)} sessions recorded"
            )
            return profile

        window = list(history[-difficulty.recent_sessions_window :])

        # More recent sessions weigh more
        weights = range(1, len(window) + 1)
        rolling_accuracy = sum(
            record.accuracy * weight for record, weight in zip(window, weights)
        ) / sum(weights)

        timed = [r.average_response_time_ms for r in window if r.average_response_time_ms > 0]
        average_response_time = sum(timed) / len(timed) if timed else 0.0

        delta = 0
        reasons = []
        if rolling_accuracy >= difficulty.accuracy_threshold_increase:
            delta += difficulty.accuracy_step
            reasons.append("high accuracy")
        elif rolling_accuracy < difficulty.accuracy_threshold_decrease:
            delta -= difficulty.accuracy_step
            reasons.append("low accuracy")

        if timed:
            if average_response_time < difficulty.response_time_fast_ms:
                delta += difficulty.response_time_step
                reasons.append("fast responses")
            elif average_response_time > difficulty.response_time_slow_ms:
                delta -= difficulty.response_time_step
                reasons.append("slow responses")

        if perfect_streak >= difficulty.perfect_streak_threshold:
            delta += difficulty.streak_step
            reasons.append(f"{perfect_streak}-answer streak")

        previous_level = profile.global_level
        target = self.clamp_level(previous_level + delta)
        new_level = self.smooth(previous_level, target)
        if new_level == previous_level:
            return profile

        if new_level > previous_level:
            reason = "Excellent performance - increasing challenge"
        else:
            reason = "Adjusting to improve learning flow"
        reason = f"{reason} ({', '.join(reasons)})"

        adjustment = DifficultyAdjustment(
            timestamp=now,
            previous_level=previous_level,
            new_level=new_level,
            reason=reason,
            trigger_metrics=TriggerMetrics(
                recent_accuracy=rolling_accuracy,
                average_response_time=average_response_time,
                streak_length=perfect_streak,
            ),
        )
        logger.info(f"Difficulty adjusted from {previous_level} to {new_level}: {reason}")
        return self._apply(profile, adjustment)

    def set_level(
        self, profile: DifficultyProfile, level: float, now: datetime
    ) -> DifficultyProfile:
        """Manually override the global level.

        Args:
            profile: Current difficulty profile
            level: Requested level; clamped into range
            now: Override time

        Returns:
            Updated profile with a "manual" adjustment record
        """
        new_level = self.clamp_level(level)
        adjustment = DifficultyAdjustment(
            timestamp=now,
            previous_level=profile.global_level,
            new_level=new_level,
            reason=MANUAL_REASON,
        )
        logger.info(f"Difficulty manually set to {new_level}")
        return self._apply(profile, adjustment)

    def adjust_category_levels(
        self,
        profile: DifficultyProfile,
        categories: Sequence[CategoryPerformance],
    ) -> DifficultyProfile:
        """Re-derive per-category levels from category aggregates.

        Categories below the sample minimum keep their current level. Category
        levels record no adjustment history.

        Args:
            profile: Current difficulty profile
            categories: Category aggregates from the current analysis pass

        Returns:
            Updated profile
        """
        difficulty = self.config.difficulty
        weak = self.config.weak_spot
        levels = dict(profile.category_levels)

        for stats in categories:
            if stats.subcategory is not None:
                continue
            accuracy = stats.accuracy
            if stats.reviewed_cards < weak.min_category_samples or accuracy is None:
                continue

            delta = 0
            if accuracy >= difficulty.category_accuracy_increase:
                delta += difficulty.accuracy_step
            elif accuracy < difficulty.category_accuracy_decrease:
                delta -= difficulty.accuracy_step
            if stats.average_ease_factor >= difficulty.category_ease_increase:
                delta += difficulty.response_time_step
            elif stats.average_ease_factor < weak.weak_ease_factor_threshold:
                delta -= difficulty.response_time_step

            current = levels.get(stats.category, profile.global_level)
            levels[stats.category] = self.smooth(
                current, self.clamp_level(current + delta)
            )

        return replace(profile, category_levels=levels)

    def _apply(
        self, profile: DifficultyProfile, adjustment: DifficultyAdjustment
    ) -> DifficultyProfile:
        cap = self.config.difficulty.max_adjustment_history
        history = [*profile.adjustment_history, adjustment][-cap:]

        if adjustment.new_level > adjustment.previous_level:
            trend = DifficultyTrend.UP
        elif adjustment.new_level < adjustment.previous_level:
            trend = DifficultyTrend.DOWN
        else:
            trend = DifficultyTrend.STABLE

        return replace(
            profile,
            global_level=adjustment.new_level,
            recent_trend=trend,
            last_adjustment=adjustment.timestamp,
            adjustment_history=history,
        )
