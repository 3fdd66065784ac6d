"""Tests for the adaptive learning engine."""

import math
from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.core.adaptive_config import AdaptiveConfig
from src.core.adaptive_engine import AdaptiveLearningEngine
from src.core.database import DatabaseManager
from src.domain.analytics.models.analytics_models import DifficultyProfile, EngineState
from src.domain.learning.models.learning_models import (
    SessionMetrics,
    UserProgressSnapshot,
)
from src.domain.shared.models import (
    InsightSeverity,
    RecommendationType,
    StudyMode,
)
from src.domain.shared.services import ValidationError
from src.infrastructure.repositories.state_repository import EngineStateRepository


class Clock:
    """Controllable clock for the engine."""

    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def engine(clock):
    """In-memory engine with a controllable clock."""
    return AdaptiveLearningEngine(clock=clock)


def session(accuracy=80.0, response_time=4000.0, mode="flip", cards=20, **kwargs):
    values = {
        "duration_ms": cards * 10000,
        "cards_reviewed": cards,
        "accuracy": accuracy,
        "average_response_time_ms": response_time,
        "mode": mode,
    }
    values.update(kwargs)
    return values


@pytest.fixture
def weak_verbs(make_card, make_progress):
    """Twelve Verbs cards with low ease and 55% accuracy."""
    cards = [make_card(f"v{i}", "Verbs") for i in range(12)]
    progress = [make_progress(f"v{i}", total=20, correct=11, ease=1.8) for i in range(12)]
    return cards, progress


class TestEngineDefaults:
    """Test a fresh engine."""

    def test_default_state(self, engine):
        """Test defaults for a learner with no sessions."""
        assert engine.difficulty_level == 5
        assert engine.performance_history == []
        assert engine.weak_spots == []
        assert engine.learning_style_profile.primary_style is None
        assert engine.get_active_insights() == []
        assert engine.should_reanalyze()

    def test_default_recommended_mode(self, engine):
        """Test the mode for a mid-level learner without a style."""
        assert engine.get_recommended_mode() == StudyMode.MULTIPLE_CHOICE
        assert engine.get_recommended_mode(card_needs_typing=True) == (
            StudyMode.TYPE_ANSWER
        )


class TestRecordSession:
    """Test session recording."""

    def test_record_from_dict(self, engine, now):
        """Test that plain dicts are validated into session records."""
        record = engine.record_session(session(accuracy=70, mode="type-answer"))

        assert record.mode == StudyMode.TYPE_ANSWER
        assert record.timestamp == now
        assert engine.performance_history == [record]

    def test_record_from_metrics(self, engine):
        """Test recording validated metrics."""
        metrics = SessionMetrics(
            duration_ms=1000, cards_reviewed=3, accuracy=100, mode=StudyMode.FLIP
        )
        assert engine.record_session(metrics).cards_reviewed == 3

    def test_invalid_metrics(self, engine):
        """Test that invalid metrics are rejected and nothing is recorded."""
        with pytest.raises(PydanticValidationError):
            engine.record_session(session(accuracy=150))
        assert engine.performance_history == []

    def test_history_is_capped(self, clock):
        """Test that the history never exceeds its cap."""
        config = AdaptiveConfig.from_overrides(
            {"analysis": {"max_performance_history": 5}}
        )
        engine = AdaptiveLearningEngine(config, clock=clock)

        records = [engine.record_session(session()) for _ in range(8)]

        assert len(engine.performance_history) == 5
        assert engine.performance_history == records[-5:]

    def test_strong_run_raises_difficulty(self, engine):
        """Test that five strong sessions and a long streak raise level 5 to 6."""
        for _ in range(4):
            engine.record_session(session(accuracy=95, response_time=2500))
        assert engine.difficulty_level == 5

        engine.record_session(session(accuracy=95, response_time=2500), perfect_streak=12)

        assert engine.difficulty_level == 6
        assert isinstance(engine.difficulty_level, int)

    def test_check_and_adjust_difficulty(self, engine):
        """Test the explicit difficulty check."""
        for _ in range(5):
            engine.record_session(session(accuracy=40, response_time=15000))

        assert engine.check_and_adjust_difficulty() is True
        assert engine.difficulty_level == 4
        assert engine.check_and_adjust_difficulty() is True
        assert engine.difficulty_level == 3

    def test_no_adjustment_without_history(self, engine):
        """Test that the check is a no-op for new learners."""
        assert engine.check_and_adjust_difficulty(perfect_streak=50) is False
        assert engine.difficulty_level == 5


class TestSetDifficultyLevel:
    """Test manual difficulty overrides."""

    @pytest.mark.parametrize(("level", "expected"), [(15, 10), (-2, 1), (7.6, 8), (3, 3)])
    def test_clamped(self, engine, level, expected):
        """Test that manual levels are clamped and rounded."""
        assert engine.set_difficulty_level(level) == expected
        assert engine.difficulty_level == expected

    @pytest.mark.parametrize("level", ["high", None, True])
    def test_not_a_number(self, engine, level):
        """Test that non-numeric levels are rejected."""
        with pytest.raises(ValidationError):
            engine.set_difficulty_level(level)
        assert engine.difficulty_level == 5

    @pytest.mark.parametrize(("level", "expected"), [(math.inf, 10), (-math.inf, 1)])
    def test_infinite_levels_clamp(self, engine, level, expected):
        """Test that infinite levels clamp instead of overflowing."""
        assert engine.set_difficulty_level(level) == expected

    def test_nan_rejected(self, engine):
        """Test that NaN is a validation error on the level field."""
        with pytest.raises(ValidationError) as exc_info:
            engine.set_difficulty_level(math.nan)

        assert exc_info.value.field == "level"
        assert engine.difficulty_level == 5


class TestAnalyzePerformance:
    """Test the analysis pass."""

    def test_weak_verbs_detected(self, engine, weak_verbs):
        """Test that struggling Verbs after twelve sessions are a weak spot."""
        for _ in range(12):
            engine.record_session(session(accuracy=55, categories={}))
        cards, progress = weak_verbs

        assert engine.analyze_performance(cards, progress) is True

        spots = engine.weak_spots
        verbs = next(s for s in spots if s.id == "category-verbs")
        assert verbs.severity in (InsightSeverity.WARNING, InsightSeverity.CRITICAL)
        assert sorted(verbs.affected_card_ids) == sorted(c.id for c in cards)
        assert engine.state.difficulty_profile.category_levels["Verbs"] < 5
        assert engine.get_active_insights()

    def test_analysis_bookkeeping(self, engine, clock, weak_verbs):
        """Test version, timestamp and the re-analysis interval."""
        cards, progress = weak_verbs

        engine.analyze_performance(cards, progress)

        assert engine.state.analysis_version == 2
        assert engine.state.last_analysis_at == clock.current
        assert not engine.should_reanalyze()
        clock.advance(minutes=31)
        assert engine.should_reanalyze()

    def test_deterministic(self, clock, weak_verbs):
        """Test that two engines given the same inputs agree."""
        cards, progress = weak_verbs
        first = AdaptiveLearningEngine(clock=clock)
        second = AdaptiveLearningEngine(clock=clock)

        first.analyze_performance(cards, progress)
        second.analyze_performance(cards, progress)

        assert first.weak_spots == second.weak_spots
        assert first.state.category_performances == second.state.category_performances

    def test_failure_keeps_previous_state(self, engine, weak_verbs):
        """Test that a failing pass is logged and changes nothing."""
        cards, progress = weak_verbs
        engine.analyze_performance(cards, progress)
        before = list(engine.weak_spots)

        with patch.object(engine.detector, "detect", side_effect=RuntimeError("boom")):
            assert engine.analyze_performance(cards, []) is False

        assert engine.weak_spots == before
        assert engine.state.analysis_version == 2

    def test_style_updated_after_enough_sessions(self, engine):
        """Test that the learning style is classified during analysis."""
        for _ in range(5):
            engine.record_session(session(mode="listening", accuracy=90, average_quality=4.5))

        engine.analyze_performance([], [])

        assert engine.learning_style_profile.primary_style is not None
        assert engine.get_recommended_mode() in (
            StudyMode.LISTENING,
            StudyMode.DICTATION,
            StudyMode.SPEAK,
        )


class TestRecommendations:
    """Test daily plan and session composition."""

    def test_refresh_recommendations(self, engine, clock, weak_verbs):
        """Test plan generation with a streak at risk."""
        cards, progress = weak_verbs
        engine.analyze_performance(cards, progress)

        plan = engine.refresh_recommendations(
            cards,
            progress,
            UserProgressSnapshot(
                current_streak=12, last_study_date=clock.current - timedelta(days=1)
            ),
        )

        assert plan is engine.state.current_recommendations
        assert plan.recommendations[0].type == RecommendationType.STREAK_AT_RISK
        assert len(plan.recommendations) <= 5
        assert any(i.type.value == "streak_at_risk" for i in engine.get_active_insights())

    def test_invalid_daily_goal(self, engine):
        """Test that a non-positive goal is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            engine.refresh_recommendations([], [], daily_goal=0)
        assert exc_info.value.field == "daily_goal"

    def test_out_of_range_stored_level(self, clock, weak_verbs):
        """Test that a level outside 1-10 is read as the nearest bound."""
        cards, progress = weak_verbs
        state = EngineState(difficulty_profile=DifficultyProfile(global_level=15))
        engine = AdaptiveLearningEngine(state=state, clock=clock)

        assert engine.difficulty_level == 10
        assert engine.refresh_recommendations(cards, progress) is not None
        assert engine.get_session_composition(cards, progress).total_cards == 24

    def test_refresh_failure_keeps_previous_plan(self, engine, weak_verbs):
        """Test that a failing refresh returns the previous plan."""
        cards, progress = weak_verbs
        previous = engine.refresh_recommendations(cards, progress)

        with patch.object(
            engine.recommender,
            "generate_daily_recommendations",
            side_effect=RuntimeError("boom"),
        ):
            assert engine.refresh_recommendations(cards, progress) is previous

    def test_default_session_size_scales_with_level(self, engine, weak_verbs):
        """Test the difficulty-scaled default session size."""
        cards, progress = weak_verbs

        assert engine.get_session_composition(cards, progress).total_cards == 20
        engine.set_difficulty_level(8)
        assert engine.get_session_composition(cards, progress).total_cards == 24
        engine.set_difficulty_level(2)
        assert engine.get_session_composition(cards, progress).total_cards == 16

    def test_composition_sums(self, engine, weak_verbs):
        """Test that the composition adds up to its total."""
        cards, progress = weak_verbs
        engine.analyze_performance(cards, progress)

        composition = engine.get_session_composition(cards, progress, target_cards=15)

        assert composition.total_cards == 15
        assert sum(composition.category_breakdown.values()) == 15
        assert (
            composition.new_cards + composition.review_cards + composition.weakness_cards
            == 15
        )
        assert engine.state.session_composition is composition

    def test_negative_target(self, engine):
        """Test that a negative session size is a validation error."""
        with pytest.raises(ValidationError):
            engine.get_session_composition([], [], target_cards=-1)


class TestSchedulingAndInsights:
    """Test smart scheduling and insight actions through the engine."""

    def test_smart_interval_without_data(self, engine, make_card):
        """Test that the SM-2 interval passes through without analysis data."""
        assert engine.get_smart_interval(make_card("a"), 6) == 6

    def test_prioritize_due_cards(self, engine, make_card, make_progress):
        """Test due card ordering through the engine."""
        cards = [make_card("a"), make_card("b")]
        progress = [make_progress("a", due_in_days=-1), make_progress("b", due_in_days=2)]

        assert [p.card_id for p in engine.prioritize_due_cards(cards, progress)] == ["a"]

    def test_dismiss_and_act(self, engine, weak_verbs):
        """Test insight actions and unknown ids."""
        cards, progress = weak_verbs
        engine.analyze_performance(cards, progress)
        insight = engine.get_active_insights()[0]

        assert engine.mark_insight_action_taken(insight.id)
        assert engine.dismiss_insight(insight.id)
        assert insight.id not in [i.id for i in engine.get_active_insights()]
        assert not engine.dismiss_insight("missing")

    def test_insights_expire(self, engine, clock, weak_verbs):
        """Test that insights disappear after their lifetime."""
        cards, progress = weak_verbs
        engine.analyze_performance(cards, progress)
        assert engine.get_active_insights()

        clock.advance(hours=24, seconds=1)

        assert engine.get_active_insights() == []


class TestPersistence:
    """Test engine state persistence."""

    @pytest.fixture
    def repository(self, tmp_path):
        db_manager = DatabaseManager(tmp_path / "adaptive.db")
        repo = EngineStateRepository(db_manager, user_id="tester")
        yield repo
        repo.close()
        db_manager.close()

    def test_state_survives_restart(self, repository, clock, weak_verbs):
        """Test that a new engine picks up the persisted state."""
        cards, progress = weak_verbs
        engine = AdaptiveLearningEngine(repository=repository, clock=clock)
        engine.record_session(session(accuracy=60))
        engine.set_difficulty_level(7)
        engine.analyze_performance(cards, progress)
        engine.flush()

        restored = AdaptiveLearningEngine(repository=repository, clock=clock)

        assert restored.difficulty_level == 7
        assert len(restored.performance_history) == 1
        assert [s.id for s in restored.weak_spots] == [s.id for s in engine.weak_spots]
        assert restored.state.analysis_version == engine.state.analysis_version

    def test_reset(self, repository, clock):
        """Test that reset clears memory and storage."""
        engine = AdaptiveLearningEngine(repository=repository, clock=clock)
        engine.record_session(session())
        engine.reset()

        assert engine.state == EngineState()
        assert AdaptiveLearningEngine(repository=repository, clock=clock).state == (
            EngineState()
        )
