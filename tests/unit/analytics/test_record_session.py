"""Tests for session recording and trend calculation."""

from datetime import datetime, timedelta

import pytest

from src.core.adaptive_config import AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    PerformanceTrends,
    TrendDataPoint,
)
from src.domain.analytics.services.record_session import (
    SessionRecorder,
    classify_halves,
    predict_mastery_date,
)
from src.domain.learning.models.learning_models import SessionMetrics
from src.domain.shared.models import StudyMode, TimeOfDay, TrendDirection


@pytest.fixture
def recorder():
    """Session recorder with default config."""
    return SessionRecorder()


class TestClassifyHalves:
    """Test the half-vs-half trend classification."""

    def test_too_few_points_is_stable(self):
        """Test that short sequences are never a trend."""
        assert classify_halves([10, 90], threshold=5) == TrendDirection.STABLE

    def test_improving(self):
        """Test that a rising second half is improving."""
        assert classify_halves([50, 50, 80, 80], threshold=5) == TrendDirection.IMPROVING

    def test_declining(self):
        """Test that a falling second half is declining."""
        assert classify_halves([80, 80, 50, 50], threshold=5) == TrendDirection.DECLINING

    def test_lower_is_better(self):
        """Test that falling response times count as improvement."""
        result = classify_halves([5000, 5000, 3000, 3000], 500, higher_is_better=False)
        assert result == TrendDirection.IMPROVING

    def test_within_threshold_is_stable(self):
        """Test that small changes are stable."""
        assert classify_halves([70, 72, 73, 74], threshold=5) == TrendDirection.STABLE


class TestSessionRecorder:
    """Test session record construction and history management."""

    def test_build_record(self, recorder, now):
        """Test that metrics are copied and the time bucket is derived."""
        metrics = SessionMetrics(
            duration_ms=60000,
            cards_reviewed=12,
            accuracy=75,
            mode=StudyMode.TYPE_ANSWER,
            planned_cards=15,
        )

        record = recorder.build_record(metrics, now)

        assert record.session_id.startswith("session-")
        assert record.timestamp == now
        assert record.time_of_day == TimeOfDay.MORNING
        assert record.mode == StudyMode.TYPE_ANSWER
        assert record.cards_reviewed == 12
        assert record.planned_cards == 15

    def test_session_ids_are_unique(self, recorder, now):
        """Test that every record gets its own id."""
        metrics = SessionMetrics(
            duration_ms=0, cards_reviewed=0, accuracy=0, mode=StudyMode.FLIP
        )
        first = recorder.build_record(metrics, now)
        second = recorder.build_record(metrics, now)
        assert first.session_id != second.session_id

    def test_append_keeps_most_recent(self, make_record):
        """Test that the history is capped and evicts the oldest records."""
        recorder = SessionRecorder(
            AdaptiveConfig.from_overrides({"analysis": {"max_performance_history": 3}})
        )
        history = []
        records = [make_record(days_ago=5 - i) for i in range(5)]
        for record in records:
            history = recorder.append(history, record)

        assert len(history) == 3
        assert history == records[-3:]

    def test_append_does_not_mutate_input(self, recorder, make_record):
        """Test that append returns a new list."""
        history = [make_record()]
        updated = recorder.append(history, make_record())
        assert len(history) == 1
        assert len(updated) == 2


class TestCalculateTrends:
    """Test rolling trend computation."""

    def test_too_little_history_returns_current(self, recorder, make_record, now):
        """Test that fewer than three sessions leave trends unchanged."""
        current = PerformanceTrends()
        result = recorder.calculate_trends([make_record(), make_record()], current, now)
        assert result is current

    def test_daily_aggregation(self, recorder, make_record, now):
        """Test that records are grouped per local day."""
        history = [
            make_record(accuracy=60, days_ago=2, cards=10),
            make_record(accuracy=80, days_ago=2, cards=20),
            make_record(accuracy=90, days_ago=1, cards=5),
        ]

        trends = recorder.calculate_trends(history, PerformanceTrends(), now)

        assert [p.sessions for p in trends.daily] == [2, 1]
        assert trends.daily[0].accuracy == 70
        assert trends.daily[0].cards_reviewed == 30
        assert trends.daily[0].date == (now - timedelta(days=2)).date().isoformat()

    def test_old_sessions_excluded_from_daily(self, recorder, make_record, now):
        """Test that the daily window only covers the last week."""
        history = [
            make_record(days_ago=30),
            make_record(days_ago=20),
            make_record(days_ago=1),
        ]
        trends = recorder.calculate_trends(history, PerformanceTrends(), now)
        assert len(trends.daily) == 1
        assert sum(p.sessions for p in trends.monthly) == 3

    def test_accuracy_trend_and_consistency(self, recorder, make_record, now):
        """Test that rising daily accuracy is improving and consistency drops with spread."""
        history = [
            make_record(accuracy=acc, days_ago=days)
            for acc, days in [(50, 6), (50, 5), (50, 4), (80, 3), (80, 2), (80, 1)]
        ]

        trends = recorder.calculate_trends(history, PerformanceTrends(), now)

        assert trends.overall.accuracy_trend == TrendDirection.IMPROVING
        assert trends.overall.speed_trend == TrendDirection.STABLE
        assert trends.overall.consistency_score == pytest.approx(85.0)

    def test_weekly_keys_use_iso_weeks(self, recorder, make_record, now):
        """Test that weekly points are keyed by ISO year and week."""
        history = [make_record(days_ago=d) for d in (1, 2, 3)]
        trends = recorder.calculate_trends(history, PerformanceTrends(), now)
        iso = now.isocalendar()
        assert trends.weekly[-1].date == f"{iso.year}-W{iso.week:02d}"


class TestPredictMasteryDate:
    """Test mastery date projection."""

    def test_nothing_remaining(self, now):
        """Test that a fully mastered deck is mastered now."""
        assert predict_mastery_date(PerformanceTrends(), 0, now) == now

    def test_no_pace(self, now):
        """Test that without mastered cards there is no projection."""
        trends = PerformanceTrends(daily=[TrendDataPoint(date="2024-03-12", sessions=1)])
        assert predict_mastery_date(trends, 10, now) is None

    def test_projection(self, now):
        """Test projection from the average daily mastering pace."""
        trends = PerformanceTrends(
            daily=[
                TrendDataPoint(date="2024-03-11", sessions=1, new_cards_mastered=2),
                TrendDataPoint(date="2024-03-12", sessions=2, new_cards_mastered=4),
            ]
        )
        result = predict_mastery_date(trends, 10, now)
        assert isinstance(result, datetime)
        assert result == now + timedelta(days=4)
