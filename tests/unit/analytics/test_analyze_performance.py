"""Tests for category and time-of-day performance aggregation."""

import pytest

from src.domain.analytics.services.analyze_performance import PerformanceAggregator
from src.domain.shared.models import (
    MistakeType,
    StudyDirection,
    TimeOfDay,
    TrendDirection,
)

C2E = StudyDirection.CATALAN_TO_ENGLISH


@pytest.fixture
def aggregator():
    """Performance aggregator with default config."""
    return PerformanceAggregator()


class TestCategoryPerformance:
    """Test per-category aggregation."""

    @pytest.fixture
    def snapshot(self, make_card, make_progress):
        cards = [
            make_card("v1", "Verbs"),
            make_card("v2", "Verbs"),
            make_card("n1", "Nouns"),
        ]
        progress = [
            make_progress("v1", total=10, correct=8, ease=2.5, interval=25),
            make_progress("v1", direction=C2E, total=4, correct=2, ease=1.8),
        ]
        return cards, progress

    def test_counts_and_averages(self, aggregator, snapshot, now):
        """Test totals, ease average and mastered/struggling counts."""
        cards, progress = snapshot

        result = aggregator.analyze_category_performance(cards, progress, [], now)

        assert [c.category for c in result] == ["Nouns", "Verbs"]
        verbs = result[1]
        assert verbs.total_cards == 2
        assert verbs.reviewed_cards == 2
        assert verbs.correct_count == 10
        assert verbs.incorrect_count == 4
        assert verbs.average_ease_factor == pytest.approx(2.15)
        assert verbs.mastered_count == 1
        assert verbs.struggling_count == 1
        assert verbs.accuracy == pytest.approx(10 / 14)
        assert verbs.confidence_score == pytest.approx(28.0)
        assert verbs.last_reviewed is not None

    def test_unreviewed_category(self, aggregator, snapshot, now):
        """Test that a category without reviews has no accuracy and default ease."""
        cards, progress = snapshot

        nouns = aggregator.analyze_category_performance(cards, progress, [], now)[0]

        assert nouns.reviewed_cards == 0
        assert nouns.accuracy is None
        assert nouns.average_ease_factor == 2.5
        assert nouns.confidence_score == 0
        assert nouns.trend_direction == TrendDirection.STABLE

    def test_error_distribution(self, aggregator, snapshot, make_mistake, now):
        """Test that mistakes are counted per error type in their card's category."""
        cards, progress = snapshot
        mistakes = [
            make_mistake("v1", MistakeType.ACCENT),
            make_mistake("v2", MistakeType.ACCENT),
            make_mistake("v2", MistakeType.GENDER),
            make_mistake("unknown-card", MistakeType.WRONG),
        ]

        verbs = aggregator.analyze_category_performance(cards, progress, mistakes, now)[1]

        assert verbs.error_type_distribution[MistakeType.ACCENT] == 2
        assert verbs.error_type_distribution[MistakeType.GENDER] == 1
        assert verbs.error_type_distribution[MistakeType.WRONG] == 0

    def test_mistake_trend_improving(self, aggregator, snapshot, make_mistake, now):
        """Test that fewer recent mistakes than before means improving."""
        cards, progress = snapshot
        mistakes = [make_mistake("v1", days_ago=20) for _ in range(3)]

        verbs = aggregator.analyze_category_performance(cards, progress, mistakes, now)[1]

        assert verbs.trend_direction == TrendDirection.IMPROVING

    def test_mistake_trend_declining(self, aggregator, snapshot, make_mistake, now):
        """Test that a burst of recent mistakes means declining."""
        cards, progress = snapshot
        mistakes = [make_mistake("v1", days_ago=30)] + [
            make_mistake("v1", days_ago=1) for _ in range(5)
        ]

        verbs = aggregator.analyze_category_performance(cards, progress, mistakes, now)[1]

        assert verbs.trend_direction == TrendDirection.DECLINING

    def test_response_time_from_history(self, aggregator, snapshot, make_record, now):
        """Test count-weighted response time from session category breakdowns."""
        cards, progress = snapshot
        history = [
            make_record(response_time_ms=4000, categories={"Verbs": (10, 80)}),
            make_record(response_time_ms=2000, categories={"Verbs": (30, 70)}),
            make_record(response_time_ms=9000, categories={"Nouns": (5, 50)}),
        ]

        result = aggregator.analyze_category_performance(
            cards, progress, [], now, history=history
        )

        assert result[1].average_response_time_ms == pytest.approx(2500)
        assert result[0].average_response_time_ms == pytest.approx(9000)

    def test_by_subcategory(self, aggregator, make_card, make_progress, now):
        """Test grouping by category and subcategory."""
        cards = [
            make_card("a", "Verbs", subcategory="irregular"),
            make_card("b", "Verbs", subcategory="regular"),
            make_card("c", "Verbs"),
        ]

        result = aggregator.analyze_category_performance(
            cards, [make_progress("a")], [], now, by_subcategory=True
        )

        assert [(c.category, c.subcategory) for c in result] == [
            ("Verbs", None),
            ("Verbs", "irregular"),
            ("Verbs", "regular"),
        ]
        assert result[1].reviewed_cards == 1

    def test_empty_input(self, aggregator, now):
        """Test that no cards produce no categories."""
        assert aggregator.analyze_category_performance([], [], [], now) == []


class TestTimePerformance:
    """Test per-time-bucket aggregation."""

    def test_empty_buckets_are_skipped(self, aggregator, make_record):
        """Test that only buckets with sessions are reported."""
        history = [
            make_record(time_of_day=TimeOfDay.EVENING),
            make_record(time_of_day=TimeOfDay.MORNING),
        ]

        result = aggregator.analyze_time_performance(history)

        assert [t.time_of_day for t in result] == [TimeOfDay.MORNING, TimeOfDay.EVENING]

    def test_optimal_score(self, aggregator, make_record):
        """Test the accuracy/speed/volume blend."""
        history = [
            make_record(accuracy=70, response_time_ms=3000, cards=10),
            make_record(accuracy=90, response_time_ms=5000, cards=30),
        ]

        morning = aggregator.analyze_time_performance(history)[0]

        assert morning.sessions_count == 2
        assert morning.average_accuracy == pytest.approx(80)
        assert morning.average_response_time_ms == pytest.approx(4000)
        assert morning.average_cards_per_session == pytest.approx(20)
        assert morning.optimal_score == pytest.approx(80 * 0.6 + 60 * 0.3 + 100 * 0.1)

    def test_no_history(self, aggregator):
        """Test that an empty history yields nothing."""
        assert aggregator.analyze_time_performance([]) == []
