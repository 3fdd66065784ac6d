"""Session recording and rolling performance trends.

One ``SessionPerformanceRecord`` is appended per completed session to a
bounded history. Trends are recomputed from the history after every append.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from statistics import fmean, pvariance
from uuid import uuid4

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig, time_of_day
from src.domain.analytics.models.analytics_models import (
    PerformanceTrends,
    SessionPerformanceRecord,
    TrendDataPoint,
)
from src.domain.learning.models.learning_models import SessionMetrics
from src.domain.shared.models import TrendDirection

logger = logging.getLogger(__name__)


def classify_halves(
    values: Sequence[float],
    threshold: float,
    higher_is_better: bool = True,
    min_points: int = 3,
) -> TrendDirection:
    """Compare the mean of the first and second half of a sequence.

    Args:
        values: Chronologically ordered values
        threshold: Minimum change of the mean to count as a trend
        higher_is_better: Whether an increase means improvement
        min_points: Minimum number of values needed

    Returns:
        Trend direction
    """
    if len(values) < min_points:
        return TrendDirection.STABLE

    middle = len(values) // 2
    first_avg = fmean(values[:middle])
    second_avg = fmean(values[middle:])
    change = second_avg - first_avg if higher_is_better else first_avg - second_avg

    if change > threshold:
        return TrendDirection.IMPROVING
    if change < -threshold:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


class SessionRecorder:
    """Builds session records and keeps the history and trends current."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize session recorder.

        Args:
            config: Engine configuration
        """
        self.config = config

    def build_record(
        self, metrics: SessionMetrics, now: datetime
    ) -> SessionPerformanceRecord:
        """Turn raw session metrics into a history record.

        Args:
            metrics: Validated session metrics
            now: Session completion time (local wall clock)

        Returns:
            New session record
        """
        return SessionPerformanceRecord(
            session_id=f"session-{uuid4()}",
            timestamp=now,
            time_of_day=time_of_day(now, self.config.time_buckets),
            mode=metrics.mode,
            duration_ms=metrics.duration_ms,
            cards_reviewed=metrics.cards_reviewed,
            accuracy=metrics.accuracy,
            average_quality=metrics.average_quality,
            average_response_time_ms=metrics.average_response_time_ms,
            category_breakdown=dict(metrics.category_breakdown),
            mistake_types=dict(metrics.mistake_types),
            planned_cards=metrics.planned_cards,
            new_cards_mastered=metrics.new_cards_mastered,
        )

    def append(
        self,
        history: Sequence[SessionPerformanceRecord],
        record: SessionPerformanceRecord,
    ) -> list[SessionPerformanceRecord]:
        """Append a record, evicting the oldest entries past the cap."""
        cap = self.config.analysis.max_performance_history
        updated = [*history, record]
        if len(updated) > cap:
            updated = updated[-cap:]
        return updated

    def calculate_trends(
        self,
        history: Sequence[SessionPerformanceRecord],
        current: PerformanceTrends,
        now: datetime,
    ) -> PerformanceTrends:
        """Recompute rolling trends from the session history.

        Args:
            history: Chronologically ordered session records
            current: Trends before this update
            now: Reference time for the rolling windows

        Returns:
            Updated trends (``current`` when there is too little data)
        """
        analysis = self.config.analysis
        if len(history) < analysis.min_trend_data_points:
            return current

        daily_cutoff = now - timedelta(days=analysis.daily_trend_days)
        history_cutoff = now - timedelta(days=analysis.trend_history_days)
        recent = [r for r in history if r.timestamp > daily_cutoff]
        window = [r for r in history if r.timestamp > history_cutoff]

        daily = self._aggregate(recent, lambda ts: ts.date().isoformat())
        weekly = self._aggregate(
            window,
            lambda ts: f"{ts.isocalendar().year}-W{ts.isocalendar().week:02d}",
        )
        monthly = self._aggregate(window, lambda ts: ts.strftime("%Y-%m"))

        accuracy_trend = classify_halves(
            [point.accuracy for point in daily],
            analysis.trend_change_threshold,
            min_points=analysis.min_trend_data_points,
        )
        speed_trend = classify_halves(
            [point.average_response_time_ms for point in daily],
            analysis.speed_trend_threshold_ms,
            higher_is_better=False,
            min_points=analysis.min_trend_data_points,
        )

        consistency = current.overall.consistency_score
        if recent:
            accuracies = [r.accuracy for r in recent]
            consistency = max(0.0, 100 - math.sqrt(pvariance(accuracies)))

        overall = replace(
            current.overall,
            accuracy_trend=accuracy_trend,
            speed_trend=speed_trend,
            consistency_score=round(consistency, 2),
        )
        return PerformanceTrends(
            daily=daily, weekly=weekly, monthly=monthly, overall=overall
        )

    def _aggregate(
        self,
        records: Sequence[SessionPerformanceRecord],
        key: Callable[[datetime], str],
    ) -> list[TrendDataPoint]:
        """Group records by a date key and average them."""
        grouped: dict[str, list[SessionPerformanceRecord]] = {}
        for record in records:
            grouped.setdefault(key(record.timestamp), []).append(record)

        points = []
        for date_key in sorted(grouped):
            group = grouped[date_key]
            points.append(
                TrendDataPoint(
                    date=date_key,
                    accuracy=fmean(r.accuracy for r in group),
                    cards_reviewed=sum(r.cards_reviewed for r in group),
                    time_spent_ms=sum(r.duration_ms for r in group),
                    new_cards_mastered=sum(r.new_cards_mastered for r in group),
                    sessions=len(group),
                    average_response_time_ms=fmean(
                        r.average_response_time_ms for r in group
                    ),
                )
            )
        return points


def predict_mastery_date(
    trends: PerformanceTrends, remaining_cards: int, now: datetime
) -> datetime | None:
    """Project when the remaining cards will be mastered at the recent pace.

    Args:
        trends: Current trends; the daily points give the mastering pace
        remaining_cards: Card-directions not yet mastered
        now: Reference time

    Returns:
        Projected date, or None without a measurable pace
    """
    if remaining_cards <= 0:
        return now
    studied_days = [point for point in trends.daily if point.sessions > 0]
    if not studied_days:
        return None
    pace = sum(point.new_cards_mastered for point in studied_days) / len(
        studied_days
    )
    if pace <= 0:
        return None
    return now + timedelta(days=math.ceil(remaining_cards / pace))
