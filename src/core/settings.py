"""Application settings and configuration management."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database Configuration
    database_path: str = Field(
        default="data/adaptive.db", alias="ADAPTIVE_DATABASE_PATH"
    )
    user_id: str = Field(default="default", alias="ADAPTIVE_USER_ID")

    # Engine Configuration
    persisted_history_limit: int = Field(
        default=50, ge=0, alias="ADAPTIVE_PERSISTED_HISTORY_LIMIT"
    )
    default_session_cards: int = Field(
        default=20, gt=0, alias="ADAPTIVE_DEFAULT_SESSION_CARDS"
    )
    daily_goal: int = Field(default=20, gt=0, alias="ADAPTIVE_DAILY_GOAL")
    config_path: str = Field(default="", alias="ADAPTIVE_CONFIG_PATH")

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="ADAPTIVE_LOG_LEVEL")
    log_file: str = Field(default="", alias="ADAPTIVE_LOG_FILE")

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()


def load_adaptive_config(settings: Settings | None = None) -> AdaptiveConfig:
    """Build the engine configuration, applying the optional override file.

    The override file is JSON mapping section names to field overrides, e.g.
    ``{"difficulty": {"smoothing_factor": 0.5}}``.

    Args:
        settings: Settings to read the override path from

    Returns:
        Engine configuration

    Raises:
        FileNotFoundError: If the configured override file does not exist
        ValueError: If the file names unknown sections or fields
    """
    settings = settings or get_settings()
    if not settings.config_path:
        return DEFAULT_CONFIG

    path = Path(settings.config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config override file not found: {path}")

    with open(path, encoding="utf-8") as f:
        overrides = json.load(f)
    return AdaptiveConfig.from_overrides(overrides)
