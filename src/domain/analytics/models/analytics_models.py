"""Analytics domain models.

Everything here is derived by the analytics services and owned by the
engine. Collections are replaced wholesale on every pass, so the dataclasses
are treated as values: services build new instances (``dataclasses.replace``)
instead of mutating stored ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.domain.learning.models.learning_models import CategorySessionStats
from src.domain.shared.models import (
    DifficultyTrend,
    InsightSeverity,
    InsightType,
    LearningStyle,
    MistakeType,
    RecommendationType,
    StudyDirection,
    StudyMode,
    TimeOfDay,
    TrendDirection,
    WeakSpotType,
)


def empty_error_distribution() -> dict[MistakeType, int]:
    return dict.fromkeys(MistakeType, 0)


# ============================================================================
# Session history
# ============================================================================


@dataclass
class SessionPerformanceRecord:
    """Immutable fact about one completed study session."""

    session_id: str
    timestamp: datetime
    time_of_day: TimeOfDay
    mode: StudyMode
    duration_ms: int = 0
    cards_reviewed: int = 0
    accuracy: float = 0.0  # percent
    average_quality: float = 0.0
    average_response_time_ms: float = 0.0
    category_breakdown: dict[str, CategorySessionStats] = field(default_factory=dict)
    mistake_types: dict[MistakeType, int] = field(default_factory=dict)
    planned_cards: int | None = None
    new_cards_mastered: int = 0


@dataclass
class TrendDataPoint:
    """Aggregate for one day, ISO week or month."""

    date: str
    accuracy: float = 0.0
    cards_reviewed: int = 0
    time_spent_ms: int = 0
    new_cards_mastered: int = 0
    sessions: int = 0
    average_response_time_ms: float = 0.0


@dataclass
class OverallTrend:
    """Summary of where the learner is heading."""

    accuracy_trend: TrendDirection = TrendDirection.STABLE
    speed_trend: TrendDirection = TrendDirection.STABLE
    consistency_score: float = 0.0
    predicted_mastery_date: datetime | None = None


@dataclass
class PerformanceTrends:
    """Rolling trend data."""

    daily: list[TrendDataPoint] = field(default_factory=list)
    weekly: list[TrendDataPoint] = field(default_factory=list)
    monthly: list[TrendDataPoint] = field(default_factory=list)
    overall: OverallTrend = field(default_factory=OverallTrend)


# ============================================================================
# Aggregates
# ============================================================================


@dataclass
class CategoryPerformance:
    """Performance statistics for a category (or category/subcategory)."""

    category: str
    subcategory: str | None = None
    total_cards: int = 0
    reviewed_cards: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    average_ease_factor: float = 2.5
    average_response_time_ms: float = 0.0
    mastered_count: int = 0
    struggling_count: int = 0
    last_reviewed: datetime | None = None
    error_type_distribution: dict[MistakeType, int] = field(
        default_factory=empty_error_distribution
    )
    trend_direction: TrendDirection = TrendDirection.STABLE
    confidence_score: float = 0.0

    @property
    def total_interactions(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def accuracy(self) -> float | None:
        """Fraction of correct reviews, or None without samples."""
        total = self.total_interactions
        return self.correct_count / total if total else None


@dataclass
class TimePerformance:
    """Performance for one time-of-day bucket."""

    time_of_day: TimeOfDay
    sessions_count: int = 0
    average_accuracy: float = 0.0  # percent
    average_response_time_ms: float = 0.0
    average_cards_per_session: float = 0.0
    optimal_score: float = 0.0


# ============================================================================
# Weak spots and insights
# ============================================================================


@dataclass
class WeakSpot:
    """Detected weakness with the cards needed to drill it."""

    id: str
    type: WeakSpotType
    target: str
    severity: InsightSeverity
    score: float  # 0-100, higher is worse
    description: str
    suggested_action: str
    affected_card_ids: list[str] = field(default_factory=list)
    detected_at: datetime | None = None
    last_updated: datetime | None = None


@dataclass
class LearningInsight:
    """Time-boxed, dismissible notification derived from analysis."""

    id: str
    type: InsightType
    title: str
    description: str
    severity: InsightSeverity
    created_at: datetime
    expires_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    dismissed: bool = False
    action_taken: bool = False
    source_id: str = ""

    def is_active(self, now: datetime) -> bool:
        return not self.dismissed and now <= self.expires_at


# ============================================================================
# Difficulty
# ============================================================================


@dataclass
class TriggerMetrics:
    """Signals that caused a difficulty adjustment."""

    recent_accuracy: float = 0.0
    average_response_time: float = 0.0
    streak_length: int = 0


@dataclass
class DifficultyAdjustment:
    """Record of one difficulty change."""

    timestamp: datetime
    previous_level: int
    new_level: int
    reason: str
    trigger_metrics: TriggerMetrics = field(default_factory=TriggerMetrics)


@dataclass
class DifficultyProfile:
    """The learner's adaptive difficulty."""

    global_level: int = 5
    category_levels: dict[str, int] = field(default_factory=dict)
    recent_trend: DifficultyTrend = DifficultyTrend.STABLE
    last_adjustment: datetime | None = None
    adjustment_history: list[DifficultyAdjustment] = field(default_factory=list)


@dataclass
class CardDifficulty:
    """Per-card difficulty estimate on a 1-10 scale."""

    card_id: str
    intrinsic_difficulty: float
    user_difficulty: float
    combined_score: float
    word_length: int = 0
    has_special_chars: bool = False
    category_complexity: float = 0.0
    user_ease_factor: float = 2.5
    mistake_count: int = 0


# ============================================================================
# Learning style
# ============================================================================


@dataclass
class ModeEffectiveness:
    """How well a study mode works for the learner."""

    mode: StudyMode
    sessions_count: int = 0
    cards_reviewed: int = 0
    average_accuracy: float = 0.0  # percent
    average_quality: float = 0.0
    retention_rate: float = 0.0  # percent
    average_response_time_ms: float = 0.0
    engagement_score: float = 0.0
    effectiveness_score: float = 0.0


def default_style_scores(score: float = 50.0) -> dict[LearningStyle, float]:
    return dict.fromkeys(LearningStyle, score)


@dataclass
class LearningStyleProfile:
    """Inferred learning style."""

    primary_style: LearningStyle | None = None
    secondary_style: LearningStyle | None = None
    style_scores: dict[LearningStyle, float] = field(
        default_factory=default_style_scores
    )
    mode_effectiveness: dict[StudyMode, ModeEffectiveness] = field(
        default_factory=dict
    )
    last_updated: datetime | None = None
    confidence_level: float = 0.0


# ============================================================================
# Recommendations
# ============================================================================


@dataclass
class StudyRecommendation:
    """One entry of the daily plan."""

    id: str
    priority: int  # 1 = highest
    type: RecommendationType
    title: str
    description: str
    suggested_card_count: int
    estimated_time_minutes: int
    expected_benefit: str = ""
    reasoning: str = ""
    target_category: str | None = None
    target_mode: StudyMode | None = None
    severity: InsightSeverity = InsightSeverity.INFO
    priority_score: float = 0.0


@dataclass
class DailyRecommendation:
    """Generated study plan for one day."""

    id: str
    date: str  # YYYY-MM-DD
    recommendations: list[StudyRecommendation] = field(default_factory=list)
    focus_areas: list[str] = field(default_factory=list)
    suggested_duration: int = 0  # minutes
    optimal_time_slots: list[TimeOfDay] = field(default_factory=list)
    generated_at: datetime | None = None


@dataclass
class DifficultyDistribution:
    """Easy/medium/hard card counts."""

    easy: int = 0
    medium: int = 0
    hard: int = 0

    @property
    def total(self) -> int:
        return self.easy + self.medium + self.hard


@dataclass
class SessionComposition:
    """Target mix for the next study session."""

    total_cards: int = 0
    new_cards: int = 0
    review_cards: int = 0
    weakness_cards: int = 0
    category_breakdown: dict[str, int] = field(default_factory=dict)
    mode_breakdown: dict[StudyMode, int] = field(default_factory=dict)
    estimated_duration: int = 0  # minutes
    difficulty_distribution: DifficultyDistribution = field(
        default_factory=DifficultyDistribution
    )


# ============================================================================
# Smart scheduling
# ============================================================================


@dataclass
class SmartScheduleFactors:
    """Multipliers suggested on top of the SM-2 interval."""

    base_interval: int
    time_of_day_multiplier: float = 1.0
    category_difficulty_multiplier: float = 1.0
    mistake_recency_multiplier: float = 1.0
    interference_factor: float = 1.0
    fatigue_adjustment: float = 1.0


@dataclass
class CardSchedulePriority:
    """Ordering hint for a due card."""

    card_id: str
    direction: StudyDirection
    base_priority: float
    adjusted_priority: float
    recommended_mode: StudyMode


# ============================================================================
# Engine state
# ============================================================================


@dataclass
class EngineState:
    """Everything the engine owns; the unit of persistence."""

    difficulty_profile: DifficultyProfile = field(default_factory=DifficultyProfile)
    learning_style_profile: LearningStyleProfile = field(
        default_factory=LearningStyleProfile
    )
    category_performances: list[CategoryPerformance] = field(default_factory=list)
    time_performances: list[TimePerformance] = field(default_factory=list)
    weak_spots: list[WeakSpot] = field(default_factory=list)
    insights: list[LearningInsight] = field(default_factory=list)
    current_recommendations: DailyRecommendation | None = None
    session_composition: SessionComposition | None = None
    performance_history: list[SessionPerformanceRecord] = field(default_factory=list)
    trends: PerformanceTrends = field(default_factory=PerformanceTrends)
    last_analysis_at: datetime | None = None
    analysis_version: int = 1
