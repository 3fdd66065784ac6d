"""Configuration table for the adaptive learning engine.

All algorithm thresholds and tunable parameters live here. The table is
immutable; components receive it as an argument so tests can exercise
boundary values by building a modified copy with ``dataclasses.replace`` or
``AdaptiveConfig.from_overrides``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

from src.domain.shared.models import LearningStyle, StudyMode, TimeOfDay


@dataclass(frozen=True)
class WeakSpotConfig:
    """Weak spot detection thresholds."""

    weak_ease_factor_threshold: float = 2.0
    weak_accuracy_threshold: float = 0.7  # fraction
    error_type_dominance_threshold: float = 0.4
    min_samples_for_analysis: int = 10
    min_category_samples: int = 5
    critical_severity_threshold: float = 70
    warning_severity_threshold: float = 40
    time_accuracy_difference_threshold: float = 0.15
    direction_asymmetry_threshold: float = 0.15
    recency_weight_factor: float = 1.5
    confidence_sample_curve: int = 50
    # Most recent mistakes considered for error-type dominance
    error_analysis_window: int = 200
    min_time_bucket_sessions: int = 3
    min_confusion_count: int = 3
    confusion_warning_count: int = 5
    confusion_score_per_count: float = 15
    max_confusion_weak_spots: int = 5
    # Category score blend; ease deficit is measured between these two bounds
    ease_deficit_weight: float = 0.5
    accuracy_deficit_weight: float = 0.5
    ease_factor_ceiling: float = 2.5
    ease_factor_floor: float = 1.3
    mastered_interval_days: int = 21
    trend_improving_ratio: float = 0.7
    trend_declining_ratio: float = 1.3


@dataclass(frozen=True)
class DifficultyConfig:
    """Adaptive difficulty thresholds."""

    smoothing_factor: float = 0.3
    accuracy_threshold_increase: float = 90  # percent
    accuracy_threshold_decrease: float = 60  # percent
    response_time_fast_ms: float = 3000
    response_time_slow_ms: float = 10000
    min_sessions_for_adjustment: int = 3
    perfect_streak_threshold: int = 10
    min_difficulty_level: int = 1
    max_difficulty_level: int = 10
    default_difficulty_level: int = 5
    max_adjustment_history: int = 20
    recent_sessions_window: int = 5
    accuracy_step: int = 2
    response_time_step: int = 1
    streak_step: int = 1
    # Per-category level signals (fractions / ease factor)
    category_accuracy_increase: float = 0.9
    category_accuracy_decrease: float = 0.6
    category_ease_increase: float = 2.5


@dataclass(frozen=True)
class SchedulingConfig:
    """Multipliers applied on top of the external SM-2 interval."""

    time_multiplier_min: float = 0.8
    time_multiplier_max: float = 1.0
    category_multiplier_hard: float = 0.85
    category_multiplier_easy: float = 1.1
    mistake_penalty_per_recent: float = 0.1
    mistake_penalty_max: float = 0.3
    interference_penalty: float = 0.1
    fatigue_threshold_cards: int = 15
    fatigue_penalty: float = 0.05
    fatigue_penalty_max: float = 0.15
    recent_mistake_window_days: int = 7


@dataclass(frozen=True)
class LearningStyleConfig:
    """Learning style detection weights."""

    min_sessions_for_detection: int = 5
    confidence_threshold: float = 70
    primary_style_ratio: float = 0.6
    secondary_style_ratio: float = 0.3
    exploration_ratio: float = 0.1
    accuracy_weight: float = 0.3
    retention_weight: float = 0.4
    quality_weight: float = 0.2
    engagement_weight: float = 0.1
    min_mode_samples: int = 20
    max_response_time_ms: float = 60000
    # Runner-up style must score within this many points of the primary
    secondary_style_margin: float = 15
    default_style_score: float = 50


@dataclass(frozen=True)
class RecommendationConfig:
    """Daily plan and session composition parameters."""

    max_daily_recommendations: int = 5
    critical_weakness_threshold: float = 70
    new_card_ratio_beginner: float = 0.2
    new_card_ratio_advanced: float = 0.1
    advanced_difficulty_level: int = 7
    weakness_card_ratio: float = 0.25
    streak_risk_threshold: int = 7
    insight_expiry_hours: int = 24
    min_session_cards: int = 5
    max_session_duration_minutes: int = 30
    seconds_per_card_estimate: int = 20
    max_weakness_drills: int = 2
    weakness_drill_card_cap: int = 15
    category_focus_cards: int = 20
    streak_protect_card_cap: int = 10
    new_cards_per_day_cap: int = 5
    mode_practice_cards: int = 10
    new_cards_due_ratio: float = 0.8
    # Categories with less than this share of card-directions reviewed
    low_coverage_threshold: float = 0.3
    effective_mode_threshold: float = 60
    underused_mode_share: float = 0.15
    max_focus_areas: int = 3
    max_insights_per_pass: int = 3


@dataclass(frozen=True)
class AnalysisConfig:
    """Analysis cadence and history limits."""

    reanalysis_interval_ms: int = 30 * 60 * 1000
    profile_update_interval_ms: int = 24 * 60 * 60 * 1000
    max_performance_history: int = 100
    persisted_performance_history: int = 50
    trend_history_days: int = 90
    min_trend_data_points: int = 3
    daily_trend_days: int = 7
    trend_change_threshold: float = 5  # accuracy points
    speed_trend_threshold_ms: float = 500


@dataclass(frozen=True)
class TimeBucket:
    """Hour range [start, end) for a time-of-day bucket; may wrap midnight."""

    start: int
    end: int

    def contains(self, hour: int) -> bool:
        if self.start < self.end:
            return self.start <= hour < self.end
        return hour >= self.start or hour < self.end


DEFAULT_TIME_BUCKETS: MappingProxyType[TimeOfDay, TimeBucket] = MappingProxyType(
    {
        TimeOfDay.MORNING: TimeBucket(6, 12),
        TimeOfDay.AFTERNOON: TimeBucket(12, 17),
        TimeOfDay.EVENING: TimeBucket(17, 21),
        TimeOfDay.NIGHT: TimeBucket(21, 6),
    }
)

STYLE_MODE_MAPPING: MappingProxyType[LearningStyle, tuple[StudyMode, ...]] = (
    MappingProxyType(
        {
            LearningStyle.VISUAL: (StudyMode.FLIP, StudyMode.MULTIPLE_CHOICE),
            LearningStyle.AUDITORY: (
                StudyMode.LISTENING,
                StudyMode.DICTATION,
                StudyMode.SPEAK,
            ),
            LearningStyle.KINESTHETIC: (StudyMode.TYPE_ANSWER, StudyMode.SENTENCES),
            LearningStyle.READING: (StudyMode.FLIP, StudyMode.TYPE_ANSWER),
        }
    )
)


@dataclass(frozen=True)
class DifficultyEffects:
    """How the global difficulty level shapes mode choice and session length."""

    easy_mode_levels: tuple[int, ...] = (1, 2, 3)
    mixed_mode_levels: tuple[int, ...] = (4, 5, 6)
    hard_mode_levels: tuple[int, ...] = (7, 8, 9, 10)
    session_length_easy: float = 0.8
    session_length_medium: float = 1.0
    session_length_hard: float = 1.2

    def session_length_multiplier(self, level: int) -> float:
        if level in self.easy_mode_levels:
            return self.session_length_easy
        if level in self.hard_mode_levels:
            return self.session_length_hard
        return self.session_length_medium


@dataclass(frozen=True)
class AdaptiveConfig:
    """Complete, immutable configuration for the adaptive learning engine."""

    weak_spot: WeakSpotConfig = field(default_factory=WeakSpotConfig)
    difficulty: DifficultyConfig = field(default_factory=DifficultyConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    learning_style: LearningStyleConfig = field(default_factory=LearningStyleConfig)
    recommendation: RecommendationConfig = field(
        default_factory=RecommendationConfig
    )
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    difficulty_effects: DifficultyEffects = field(default_factory=DifficultyEffects)
    time_buckets: MappingProxyType[TimeOfDay, TimeBucket] = field(
        default_factory=lambda: DEFAULT_TIME_BUCKETS
    )
    style_modes: MappingProxyType[LearningStyle, tuple[StudyMode, ...]] = field(
        default_factory=lambda: STYLE_MODE_MAPPING
    )

    @classmethod
    def from_overrides(cls, overrides: dict[str, dict[str, Any]]) -> AdaptiveConfig:
        """Build a config from the defaults plus per-section overrides.

        Args:
            overrides: Mapping of section name (e.g. ``"weak_spot"``) to a
                mapping of field name to value

        Returns:
            New configuration instance

        Raises:
            ValueError: If a section or field name is unknown
        """
        config = cls()
        section_names = {
            f.name
            for f in fields(cls)
            if f.name not in ("time_buckets", "style_modes")
        }
        changes: dict[str, Any] = {}
        for section_name, values in overrides.items():
            if section_name not in section_names:
                raise ValueError(f"Unknown config section: {section_name}")
            section = getattr(config, section_name)
            known = {f.name for f in fields(section)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown fields for {section_name}: {', '.join(sorted(unknown))}"
                )
            changes[section_name] = replace(section, **values)
        return replace(config, **changes)


DEFAULT_CONFIG = AdaptiveConfig()


def time_of_day(
    timestamp: datetime,
    buckets: MappingProxyType[TimeOfDay, TimeBucket] = DEFAULT_TIME_BUCKETS,
) -> TimeOfDay:
    """Classify a timestamp by its own wall-clock hour.

    Args:
        timestamp: Moment to classify (local time for engine-made records)
        buckets: Bucket table to use

    Returns:
        Matching time-of-day bucket
    """
    hour = timestamp.hour
    for bucket_name, bucket in buckets.items():
        if bucket.contains(hour):
            return bucket_name
    return TimeOfDay.NIGHT
