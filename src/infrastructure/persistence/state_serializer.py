"""JSON (de)serialization of the engine state.

The state is stored as one JSON document per key. Rehydration is lenient:
invalid fields are dropped so their defaults apply, and records that still
can't be built are skipped. A schema change must never wipe a learner's
history.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.core.adaptive_config import DEFAULT_CONFIG, DifficultyConfig
from src.domain.analytics.models.analytics_models import (
    CategoryPerformance,
    DailyRecommendation,
    DifficultyProfile,
    EngineState,
    LearningInsight,
    LearningStyleProfile,
    PerformanceTrends,
    SessionPerformanceRecord,
    TimePerformance,
    WeakSpot,
)
from src.domain.learning.models.learning_models import ensure_aware

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIFFICULTY_PROFILE = "difficulty_profile"
LEARNING_STYLE_PROFILE = "learning_style_profile"
CATEGORY_PERFORMANCES = "category_performances"
TIME_PERFORMANCES = "time_performances"
WEAK_SPOTS = "weak_spots"
INSIGHTS = "insights"
CURRENT_RECOMMENDATIONS = "current_recommendations"
PERFORMANCE_HISTORY = "performance_history"
TRENDS = "trends"
LAST_ANALYSIS_AT = "last_analysis_at"
ANALYSIS_VERSION = "analysis_version"

STATE_KEYS = (
    DIFFICULTY_PROFILE,
    LEARNING_STYLE_PROFILE,
    CATEGORY_PERFORMANCES,
    TIME_PERFORMANCES,
    WEAK_SPOTS,
    INSIGHTS,
    CURRENT_RECOMMENDATIONS,
    PERFORMANCE_HISTORY,
    TRENDS,
    LAST_ANALYSIS_AT,
    ANALYSIS_VERSION,
)

_ADAPTERS: dict[type, TypeAdapter[Any]] = {}


def _adapter(model: type[T]) -> TypeAdapter[T]:
    adapter = _ADAPTERS.get(model)
    if adapter is None:
        adapter = TypeAdapter(model)
        _ADAPTERS[model] = adapter
    return adapter


def _dump(model: type[T], value: T) -> Any:
    return _adapter(model).dump_python(value, mode="json")


def serialize_state(state: EngineState, history_limit: int = 50) -> dict[str, Any]:
    """Convert engine state into JSON-compatible documents per key.

    Args:
        state: Engine state to serialize
        history_limit: Number of most recent session records to keep

    Returns:
        Mapping of state key to JSON-compatible value
    """
    history = state.performance_history[-history_limit:] if history_limit else []
    return {
        DIFFICULTY_PROFILE: _dump(DifficultyProfile, state.difficulty_profile),
        LEARNING_STYLE_PROFILE: _dump(
            LearningStyleProfile, state.learning_style_profile
        ),
        CATEGORY_PERFORMANCES: [
            _dump(CategoryPerformance, c) for c in state.category_performances
        ],
        TIME_PERFORMANCES: [_dump(TimePerformance, t) for t in state.time_performances],
        WEAK_SPOTS: [_dump(WeakSpot, w) for w in state.weak_spots],
        INSIGHTS: [_dump(LearningInsight, i) for i in state.insights],
        CURRENT_RECOMMENDATIONS: (
            _dump(DailyRecommendation, state.current_recommendations)
            if state.current_recommendations is not None
            else None
        ),
        PERFORMANCE_HISTORY: [_dump(SessionPerformanceRecord, r) for r in history],
        TRENDS: _dump(PerformanceTrends, state.trends),
        LAST_ANALYSIS_AT: (
            state.last_analysis_at.isoformat() if state.last_analysis_at else None
        ),
        ANALYSIS_VERSION: state.analysis_version,
    }


def rehydrate(model: type[T], raw: Any) -> T | None:
    """Build one record, dropping invalid top-level fields if needed.

    Args:
        model: Dataclass to build
        raw: Decoded JSON value

    Returns:
        The record, or None when it can't be built even without the
        invalid fields
    """
    adapter = _adapter(model)
    try:
        return adapter.validate_python(raw)
    except PydanticValidationError as e:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed {model.__name__} record: {e}")
            return None
        invalid = {
            error["loc"][0]
            for error in e.errors()
            if error["loc"] and isinstance(error["loc"][0], str)
        }

    cleaned = {key: value for key, value in raw.items() if key not in invalid}
    try:
        record = adapter.validate_python(cleaned)
    except PydanticValidationError as e:
        logger.warning(f"Skipping malformed {model.__name__} record: {e}")
        return None
    logger.warning(
        f"Dropped invalid fields from {model.__name__}: {', '.join(sorted(invalid))}"
    )
    return record


def _rehydrate_list(model: type[T], raw: Any) -> list[T]:
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning(f"Expected a list of {model.__name__}, got {type(raw).__name__}")
        return []
    records = (rehydrate(model, item) for item in raw)
    return [record for record in records if record is not None]


def deserialize_state(documents: dict[str, Any]) -> EngineState:
    """Rebuild engine state from stored documents.

    Missing keys and unusable documents fall back to defaults.

    Args:
        documents: Mapping of state key to decoded JSON value

    Returns:
        Rehydrated engine state
    """
    state = EngineState()

    if documents.get(DIFFICULTY_PROFILE) is not None:
        profile = rehydrate(DifficultyProfile, documents[DIFFICULTY_PROFILE])
        if profile is not None:
            state.difficulty_profile = profile
    if documents.get(LEARNING_STYLE_PROFILE) is not None:
        style = rehydrate(LearningStyleProfile, documents[LEARNING_STYLE_PROFILE])
        if style is not None:
            state.learning_style_profile = style
    if documents.get(TRENDS) is not None:
        trends = rehydrate(PerformanceTrends, documents[TRENDS])
        if trends is not None:
            state.trends = trends
    if documents.get(CURRENT_RECOMMENDATIONS) is not None:
        state.current_recommendations = rehydrate(
            DailyRecommendation, documents[CURRENT_RECOMMENDATIONS]
        )

    state.category_performances = _rehydrate_list(
        CategoryPerformance, documents.get(CATEGORY_PERFORMANCES)
    )
    state.time_performances = _rehydrate_list(
        TimePerformance, documents.get(TIME_PERFORMANCES)
    )
    state.weak_spots = _rehydrate_list(WeakSpot, documents.get(WEAK_SPOTS))
    state.insights = _rehydrate_list(LearningInsight, documents.get(INSIGHTS))
    state.performance_history = _rehydrate_list(
        SessionPerformanceRecord, documents.get(PERFORMANCE_HISTORY)
    )

    last_analysis = documents.get(LAST_ANALYSIS_AT)
    if last_analysis:
        try:
            state.last_analysis_at = ensure_aware(datetime.fromisoformat(last_analysis))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid last analysis time: {last_analysis!r}")

    version = documents.get(ANALYSIS_VERSION)
    if isinstance(version, int) and not isinstance(version, bool):
        state.analysis_version = version

    _make_aware(state)
    _clamp_levels(state.difficulty_profile)
    return state


def _clamp_levels(
    profile: DifficultyProfile, limits: DifficultyConfig = DEFAULT_CONFIG.difficulty
) -> None:
    """Pull stored difficulty levels back into the valid range."""
    low, high = limits.min_difficulty_level, limits.max_difficulty_level
    if not low <= profile.global_level <= high:
        logger.warning(f"Clamping stored difficulty level {profile.global_level}")
        profile.global_level = max(low, min(high, profile.global_level))
    profile.category_levels = {
        category: max(low, min(high, level))
        for category, level in profile.category_levels.items()
    }


def _make_aware(state: EngineState) -> None:
    """Normalise rehydrated timestamps that were stored without an offset."""
    for record in state.performance_history:
        record.timestamp = ensure_aware(record.timestamp)
    for insight in state.insights:
        insight.created_at = ensure_aware(insight.created_at)
        insight.expires_at = ensure_aware(insight.expires_at)
    for spot in state.weak_spots:
        if spot.detected_at:
            spot.detected_at = ensure_aware(spot.detected_at)
        if spot.last_updated:
            spot.last_updated = ensure_aware(spot.last_updated)
    profile = state.difficulty_profile
    if profile.last_adjustment:
        profile.last_adjustment = ensure_aware(profile.last_adjustment)
    for adjustment in profile.adjustment_history:
        adjustment.timestamp = ensure_aware(adjustment.timestamp)
