"""Adaptive learning engine: the state container behind every analysis.

The engine owns the derived state (session history, profiles, aggregates,
weak spots, insights, recommendations) and is the only writer of it. Every
analysis component is a plain service over snapshots; the engine feeds them
the current state, replaces what they return and schedules persistence.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    CardSchedulePriority,
    DailyRecommendation,
    EngineState,
    LearningInsight,
    LearningStyleProfile,
    SessionComposition,
    SessionPerformanceRecord,
    WeakSpot,
)
from src.domain.analytics.services.adjust_difficulty import DifficultyController
from src.domain.analytics.services.analyze_performance import PerformanceAggregator
from src.domain.analytics.services.classify_learning_style import (
    LearningStyleClassifier,
)
from src.domain.analytics.services.detect_weak_spots import WeakSpotDetector
from src.domain.analytics.services.generate_recommendations import (
    DailyPlanRequest,
    RecommendationGenerator,
    SessionCompositionRequest,
)
from src.domain.analytics.services.manage_insights import (
    InsightManager,
    get_active_insights,
)
from src.domain.analytics.services.record_session import (
    SessionRecorder,
    predict_mastery_date,
)
from src.domain.learning.models.learning_models import (
    CardProgress,
    ConfusionPair,
    Flashcard,
    MistakeRecord,
    SessionMetrics,
    UserProgressSnapshot,
    ensure_aware,
)
from src.domain.learning.services.smart_schedule import SmartScheduler
from src.domain.shared.models import InsightSeverity, StudyMode
from src.domain.shared.services import ValidationError, log_domain_operation
from src.infrastructure.repositories.state_repository import EngineStateRepository

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current local wall-clock time as an aware datetime."""
    return datetime.now().astimezone()


class AdaptiveLearningEngine:
    """Adaptive learning engine for one learner."""

    def __init__(
        self,
        config: AdaptiveConfig = DEFAULT_CONFIG,
        repository: EngineStateRepository | None = None,
        clock: Callable[[], datetime] | None = None,
        state: EngineState | None = None,
        default_session_cards: int = 20,
        daily_goal: int = 20,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration
            repository: Optional state repository; state is loaded from it
                unless ``state`` is given
            clock: Source of the current time (local wall clock)
            state: Initial state
            default_session_cards: Base session size before difficulty scaling
            daily_goal: Default daily card goal for recommendations
        """
        self.logger = logger
        self.config = config
        self.repository = repository
        self.clock = clock or local_now
        self.default_session_cards = default_session_cards
        self.daily_goal = daily_goal

        if state is not None:
            self.state = state
        elif repository is not None:
            self.state = repository.load()
        else:
            self.state = EngineState()

        self.recorder = SessionRecorder(config)
        self.aggregator = PerformanceAggregator(config)
        self.detector = WeakSpotDetector(config)
        self.difficulty = DifficultyController(config)
        self.classifier = LearningStyleClassifier(config)
        self.recommender = RecommendationGenerator(config)
        self.insight_manager = InsightManager(config)
        self.scheduler = SmartScheduler(config)

    def now(self) -> datetime:
        return ensure_aware(self.clock())

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def difficulty_level(self) -> int:
        return self.difficulty.clamp_level(self.state.difficulty_profile.global_level)

    @property
    def performance_history(self) -> list[SessionPerformanceRecord]:
        return list(self.state.performance_history)

    @property
    def weak_spots(self) -> list[WeakSpot]:
        return list(self.state.weak_spots)

    @property
    def learning_style_profile(self) -> LearningStyleProfile:
        return self.state.learning_style_profile

    def get_active_insights(self) -> list[LearningInsight]:
        """Insights that are neither dismissed nor expired."""
        return get_active_insights(self.state.insights, self.now())

    def get_critical_weak_spots(self) -> list[WeakSpot]:
        """Weak spots with critical severity, highest score first."""
        return [
            spot
            for spot in self.state.weak_spots
            if spot.severity == InsightSeverity.CRITICAL
        ]

    def get_recommended_mode(self, card_needs_typing: bool = False) -> StudyMode:
        """Study mode for the next card given style and difficulty."""
        return self.classifier.recommend_mode(
            self.state.learning_style_profile,
            self.difficulty_level,
            card_needs_typing,
        )

    def should_reanalyze(self) -> bool:
        """Whether the re-analysis interval has passed since the last pass."""
        last = self.state.last_analysis_at
        if last is None:
            return True
        interval = timedelta(milliseconds=self.config.analysis.reanalysis_interval_ms)
        return self.now() - last >= interval

    # ------------------------------------------------------------------
    # Session recording and difficulty
    # ------------------------------------------------------------------

    @log_domain_operation
    def record_session(
        self,
        metrics: SessionMetrics | dict[str, Any],
        perfect_streak: int | None = None,
    ) -> SessionPerformanceRecord:
        """Record a completed session.

        Args:
            metrics: Session outcome; dicts are validated into SessionMetrics
            perfect_streak: When given, the difficulty check runs right after

        Returns:
            The appended session record

        Raises:
            pydantic.ValidationError: If ``metrics`` is invalid
        """
        if not isinstance(metrics, SessionMetrics):
            metrics = SessionMetrics.model_validate(metrics)

        now = self.now()
        record = self.recorder.build_record(metrics, now)
        history = self.recorder.append(self.state.performance_history, record)
        self.state.performance_history = history
        self.state.trends = self.recorder.calculate_trends(
            history, self.state.trends, now
        )
        self.logger.info(
            f"Recorded {record.mode.value} session: {record.cards_reviewed} cards, "
            f"{record.accuracy:.0f}% accuracy"
        )

        if perfect_streak is not None:
            self._adjust_difficulty(perfect_streak, now)
        self._persist()
        return record

    @log_domain_operation
    def check_and_adjust_difficulty(self, perfect_streak: int = 0) -> bool:
        """Re-evaluate the difficulty level from recent sessions.

        Returns:
            Whether the level changed
        """
        changed = self._adjust_difficulty(perfect_streak, self.now())
        if changed:
            self._persist()
        return changed

    def _adjust_difficulty(self, perfect_streak: int, now: datetime) -> bool:
        profile = self.state.difficulty_profile
        updated = self.difficulty.check_and_adjust(
            profile, self.state.performance_history, perfect_streak, now
        )
        self.state.difficulty_profile = updated
        return updated is not profile

    def set_difficulty_level(self, level: float) -> int:
        """Manually override the difficulty level.

        Args:
            level: Requested level; clamped into range

        Returns:
            The level actually set

        Raises:
            ValidationError: If ``level`` is not a number or is NaN
        """
        if isinstance(level, bool) or not isinstance(level, int | float):
            raise ValidationError("Difficulty level must be a number", field="level")
        if math.isnan(level):
            raise ValidationError("Difficulty level must not be NaN", field="level")
        self.state.difficulty_profile = self.difficulty.set_level(
            self.state.difficulty_profile, level, self.now()
        )
        self._persist()
        return self.difficulty_level

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @log_domain_operation
    def analyze_performance(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        mistakes: Sequence[MistakeRecord] = (),
        confusion_pairs: Sequence[ConfusionPair] = (),
    ) -> bool:
        """Run the full analysis pass and replace the derived state.

        Errors are logged and leave the previous state untouched.

        Args:
            cards: Flashcard snapshot
            progress: Progress snapshot
            mistakes: Mistake history
            confusion_pairs: Confusion pairs

        Returns:
            Whether the pass completed
        """
        now = self.now()
        state = self.state
        try:
            history = state.performance_history
            categories = self.aggregator.analyze_category_performance(
                cards, progress, mistakes, now, history
            )
            times = self.aggregator.analyze_time_performance(history)
            weak_spots = self.detector.detect(
                cards,
                progress,
                mistakes,
                confusion_pairs,
                categories,
                times,
                history,
                now,
                previous=state.weak_spots,
            )
            difficulty_profile = self.difficulty.adjust_category_levels(
                state.difficulty_profile, categories
            )
            style_profile = self._classify_style(now)

            mastered = sum(
                1
                for entry in progress
                if entry.interval >= self.config.weak_spot.mastered_interval_days
            )
            remaining = len(cards) * 2 - mastered
            trends = replace(
                state.trends,
                overall=replace(
                    state.trends.overall,
                    predicted_mastery_date=predict_mastery_date(
                        state.trends, remaining, now
                    ),
                ),
            )
            insights = self.insight_manager.reconcile(
                state.insights,
                weak_spots,
                state.current_recommendations,
                difficulty_profile,
                now,
            )
        except Exception:
            self.logger.exception("Performance analysis failed; keeping previous state")
            return False

        state.category_performances = categories
        state.time_performances = times
        state.weak_spots = weak_spots
        state.difficulty_profile = difficulty_profile
        state.learning_style_profile = style_profile
        state.trends = trends
        state.insights = insights
        state.last_analysis_at = now
        state.analysis_version += 1
        self.logger.info(
            f"Analysis v{state.analysis_version}: {len(categories)} categories, "
            f"{len(weak_spots)} weak spots"
        )
        self._persist()
        return True

    def update_learning_style_profile(self, force: bool = False) -> LearningStyleProfile:
        """Re-classify the learning style.

        Without ``force`` the profile is only recomputed once the profile
        update interval has passed.
        """
        now = self.now()
        profile = self._classify_style(now, force=force)
        if profile is not self.state.learning_style_profile:
            self.state.learning_style_profile = profile
            self._persist()
        return profile

    def _classify_style(self, now: datetime, force: bool = False) -> LearningStyleProfile:
        current = self.state.learning_style_profile
        interval = timedelta(
            milliseconds=self.config.analysis.profile_update_interval_ms
        )
        if (
            not force
            and current.last_updated is not None
            and now - current.last_updated < interval
        ):
            return current
        return self.classifier.classify(self.state.performance_history, current, now)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    @log_domain_operation
    def refresh_recommendations(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        user_progress: UserProgressSnapshot | None = None,
        daily_goal: int | None = None,
    ) -> DailyRecommendation | None:
        """Regenerate today's plan and reconcile insights.

        Errors are logged and leave the previous plan in place.

        Args:
            cards: Flashcard snapshot
            progress: Progress snapshot
            user_progress: Streak information
            daily_goal: Cards per day; defaults to the engine's daily goal

        Returns:
            The current plan (the previous one if generation failed)

        Raises:
            ValidationError: If ``daily_goal`` is not positive
        """
        goal = daily_goal if daily_goal is not None else self.daily_goal
        if goal <= 0:
            raise ValidationError("daily_goal must be positive", field="daily_goal")
        try:
            request = DailyPlanRequest(
                daily_goal=goal, difficulty_level=self.difficulty_level
            )
        except ValueError as e:
            raise ValidationError(str(e), field="difficulty_level") from e

        now = self.now()
        state = self.state
        try:
            recommendation = self.recommender.generate_daily_recommendations(
                request,
                cards,
                progress,
                state.weak_spots,
                state.category_performances,
                state.time_performances,
                state.learning_style_profile,
                user_progress or UserProgressSnapshot(),
                now,
            )
            insights = self.insight_manager.reconcile(
                state.insights,
                state.weak_spots,
                recommendation,
                state.difficulty_profile,
                now,
            )
        except Exception:
            self.logger.exception("Recommendation refresh failed; keeping previous plan")
            return state.current_recommendations

        state.current_recommendations = recommendation
        state.insights = insights
        self._persist()
        return recommendation

    @log_domain_operation
    def get_session_composition(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        target_cards: int | None = None,
        mistakes: Sequence[MistakeRecord] = (),
    ) -> SessionComposition:
        """Build the card mix for the next session.

        Args:
            cards: Flashcard snapshot
            progress: Progress snapshot
            target_cards: Desired session size; defaults to the base session
                size scaled by the current difficulty level
            mistakes: Mistake history, used for card difficulty

        Returns:
            Session composition

        Raises:
            ValidationError: If ``target_cards`` is negative
        """
        if target_cards is None:
            multiplier = self.config.difficulty_effects.session_length_multiplier(
                self.difficulty_level
            )
            target_cards = round(self.default_session_cards * multiplier)
        if target_cards < 0:
            raise ValidationError(
                "target_cards cannot be negative", field="target_cards"
            )
        try:
            request = SessionCompositionRequest(
                target_cards=target_cards, difficulty_level=self.difficulty_level
            )
        except ValueError as e:
            raise ValidationError(str(e), field="difficulty_level") from e

        composition = self.recommender.generate_session_composition(
            request,
            cards,
            progress,
            self.state.weak_spots,
            self.state.learning_style_profile,
            self.state.category_performances,
            mistakes,
            self.now(),
        )
        self.state.session_composition = composition
        return composition

    # ------------------------------------------------------------------
    # Smart scheduling
    # ------------------------------------------------------------------

    def get_smart_interval(
        self,
        card: Flashcard,
        base_interval: int,
        cards_reviewed_this_session: int = 0,
        mistakes: Sequence[MistakeRecord] = (),
        confusion_pairs: Sequence[ConfusionPair] = (),
    ) -> int:
        """Suggested interval in days on top of the SM-2 interval."""
        factors = self.scheduler.calculate_factors(
            card,
            base_interval,
            self.now(),
            self.state.time_performances,
            self.state.category_performances,
            mistakes,
            confusion_pairs,
            cards_reviewed_this_session,
        )
        return self.scheduler.apply(factors)

    def prioritize_due_cards(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        mistakes: Sequence[MistakeRecord] = (),
    ) -> list[CardSchedulePriority]:
        """Due card-directions ordered by urgency."""
        return self.scheduler.prioritize_due_cards(
            cards,
            progress,
            mistakes,
            self.state.learning_style_profile,
            self.difficulty_level,
            self.now(),
        )

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def dismiss_insight(self, insight_id: str) -> bool:
        """Dismiss an insight. Returns whether it exists."""
        insights, found = self.insight_manager.dismiss(self.state.insights, insight_id)
        if found:
            self.state.insights = insights
            self._persist()
        return found

    def mark_insight_action_taken(self, insight_id: str) -> bool:
        """Mark that the learner acted on an insight. Returns whether it exists."""
        insights, found = self.insight_manager.mark_action_taken(
            self.state.insights, insight_id
        )
        if found:
            self.state.insights = insights
            self._persist()
        return found

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget everything, in memory and in storage."""
        self.state = EngineState()
        if self.repository is not None:
            self.repository.clear()
        self.logger.info("Adaptive learning state reset")

    def flush(self) -> None:
        """Wait for scheduled state writes to finish."""
        if self.repository is not None:
            self.repository.flush()

    def _persist(self) -> None:
        if self.repository is not None:
            self.repository.save(self.state)
