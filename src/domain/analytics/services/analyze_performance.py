"""Category and time-of-day performance aggregation.

Both aggregations are recomputed from scratch on every call from the current
card, progress and mistake snapshots plus the session history. Nothing is
carried over between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    CategoryPerformance,
    SessionPerformanceRecord,
    TimePerformance,
)
from src.domain.learning.models.learning_models import (
    CardProgress,
    Flashcard,
    MistakeRecord,
    index_progress,
)
from src.domain.shared.models import StudyDirection, TimeOfDay, TrendDirection

logger = logging.getLogger(__name__)

GroupKey = tuple[str, str | None]


class PerformanceAggregator:
    """Derives per-category and per-time-bucket performance summaries."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize performance aggregator.

        Args:
            config: Engine configuration
        """
        self.config = config

    def analyze_category_performance(
        self,
        cards: Iterable[Flashcard],
        progress: Iterable[CardProgress],
        mistakes: Iterable[MistakeRecord],
        now: datetime,
        history: Sequence[SessionPerformanceRecord] = (),
        by_subcategory: bool = False,
    ) -> list[CategoryPerformance]:
        """Summarise performance per category.

        Args:
            cards: Flashcard snapshot
            progress: Per-card, per-direction progress snapshot
            mistakes: Mistake history
            now: Reference time for the mistake trend
            history: Session history, used for response times
            by_subcategory: Group by (category, subcategory) instead of category

        Returns:
            Category summaries sorted by category and subcategory
        """
        weak = self.config.weak_spot
        progress_index = index_progress(progress)
        cards = list(cards)

        groups: dict[GroupKey, CategoryPerformance] = {}
        ease_sums: dict[GroupKey, float] = {}
        card_groups: dict[str, GroupKey] = {}

        for card in cards:
            key: GroupKey = (
                card.category,
                card.subcategory if by_subcategory else None,
            )
            card_groups[card.id] = key
            stats = groups.get(key)
            if stats is None:
                stats = CategoryPerformance(category=key[0], subcategory=key[1])
                groups[key] = stats
                ease_sums[key] = 0.0
            stats.total_cards += 1

            for direction in StudyDirection:
                entry = progress_index.get((card.id, direction))
                if entry is None or entry.total_reviews == 0:
                    continue

                stats.reviewed_cards += 1
                stats.correct_count += entry.correct_reviews
                stats.incorrect_count += entry.total_reviews - entry.correct_reviews
                ease_sums[key] += entry.ease_factor

                if entry.interval >= weak.mastered_interval_days:
                    stats.mastered_count += 1
                elif entry.ease_factor < weak.weak_ease_factor_threshold:
                    stats.struggling_count += 1

                if entry.last_review_date and (
                    stats.last_reviewed is None
                    or entry.last_review_date > stats.last_reviewed
                ):
                    stats.last_reviewed = entry.last_review_date

        mistakes_by_group: dict[GroupKey, list[MistakeRecord]] = {}
        for mistake in mistakes:
            group_key = card_groups.get(mistake.card_id)
            if group_key is not None:
                mistakes_by_group.setdefault(group_key, []).append(mistake)

        for key, stats in groups.items():
            if stats.reviewed_cards > 0:
                stats.average_ease_factor = ease_sums[key] / stats.reviewed_cards
            else:
                stats.average_ease_factor = weak.ease_factor_ceiling

            group_mistakes = mistakes_by_group.get(key, [])
            for mistake in group_mistakes:
                stats.error_type_distribution[mistake.error_type] += 1

            stats.average_response_time_ms = self._category_response_time(
                stats.category, history
            )
            stats.confidence_score = min(
                100.0,
                stats.total_interactions / weak.confidence_sample_curve * 100,
            )
            if stats.total_interactions >= weak.min_samples_for_analysis:
                stats.trend_direction = self._mistake_trend(group_mistakes, now)

        return [groups[key] for key in sorted(groups, key=_group_sort_key)]

    def analyze_time_performance(
        self, history: Sequence[SessionPerformanceRecord]
    ) -> list[TimePerformance]:
        """Summarise performance per time-of-day bucket.

        Buckets without sessions are left out.

        Args:
            history: Session history

        Returns:
            Time bucket summaries in bucket order
        """
        by_bucket: dict[TimeOfDay, list[SessionPerformanceRecord]] = {}
        for record in history:
            by_bucket.setdefault(record.time_of_day, []).append(record)

        results = []
        for bucket in TimeOfDay:
            sessions = by_bucket.get(bucket)
            if not sessions:
                continue

            count = len(sessions)
            accuracy = sum(s.accuracy for s in sessions) / count
            response_time = sum(s.average_response_time_ms for s in sessions) / count
            cards = sum(s.cards_reviewed for s in sessions) / count

            # accuracy 60%, speed 30%, volume 10%
            speed_score = max(0.0, 100 - response_time / 100)
            optimal_score = (
                accuracy * 0.6 + speed_score * 0.3 + min(100.0, cards * 5) * 0.1
            )
            results.append(
                TimePerformance(
                    time_of_day=bucket,
                    sessions_count=count,
                    average_accuracy=accuracy,
                    average_response_time_ms=response_time,
                    average_cards_per_session=cards,
                    optimal_score=optimal_score,
                )
            )
        return results

    def _category_response_time(
        self, category: str, history: Sequence[SessionPerformanceRecord]
    ) -> float:
        """Count-weighted response time of sessions that covered the category."""
        weighted = 0.0
        total = 0
        for record in history:
            stats = record.category_breakdown.get(category)
            if stats is None or stats.count == 0:
                continue
            weighted += record.average_response_time_ms * stats.count
            total += stats.count
        return weighted / total if total else 0.0

    def _mistake_trend(
        self, mistakes: Sequence[MistakeRecord], now: datetime
    ) -> TrendDirection:
        """Compare recent vs older mistake density (mistakes per day)."""
        weak = self.config.weak_spot
        window_days = self.config.scheduling.recent_mistake_window_days
        window = timedelta(days=window_days)

        recent = [m for m in mistakes if now - m.timestamp < window]
        older = [m for m in mistakes if now - m.timestamp >= window]
        if not older:
            return TrendDirection.STABLE

        oldest = min(m.timestamp for m in older)
        older_days = max(
            float(window_days), (now - window - oldest).total_seconds() / 86400
        )
        recent_density = len(recent) / window_days
        older_density = len(older) / older_days

        if recent_density < older_density * weak.trend_improving_ratio:
            return TrendDirection.IMPROVING
        if recent_density > older_density * weak.trend_declining_ratio:
            return TrendDirection.DECLINING
        return TrendDirection.STABLE


def _group_sort_key(key: GroupKey) -> tuple[str, str]:
    return key[0], key[1] or ""
