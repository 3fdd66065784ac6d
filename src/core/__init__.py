"""Core module for the adaptive learning engine."""

from src.core.adaptive_config import (
    DEFAULT_CONFIG,
    AdaptiveConfig,
    AnalysisConfig,
    DifficultyConfig,
    LearningStyleConfig,
    RecommendationConfig,
    SchedulingConfig,
    WeakSpotConfig,
    time_of_day,
)
from src.core.database import DatabaseManager
from src.core.settings import Settings, get_settings, load_adaptive_config

__all__ = [
    # Configuration
    "AdaptiveConfig",
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    "DifficultyConfig",
    "LearningStyleConfig",
    "RecommendationConfig",
    "SchedulingConfig",
    "WeakSpotConfig",
    "time_of_day",
    # Infrastructure
    "DatabaseManager",
    "Settings",
    "get_settings",
    "load_adaptive_config",
]
