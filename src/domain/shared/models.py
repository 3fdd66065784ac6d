"""Shared models and base classes for all bounded contexts."""

from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import DeclarativeBase

# Accented letters and the Catalan middle dot (as in "col·legi")
SPECIAL_CHARACTERS = frozenset("àèéíïòóúüç·ÀÈÉÍÏÒÓÚÜÇ")


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class StudyDirection(str, Enum):
    """Direction a card is studied in."""

    ENGLISH_TO_CATALAN = "english-to-catalan"
    CATALAN_TO_ENGLISH = "catalan-to-english"


class StudyMode(str, Enum):
    """Study modes offered by the trainer."""

    FLIP = "flip"
    MULTIPLE_CHOICE = "multiple-choice"
    TYPE_ANSWER = "type-answer"
    MIXED = "mixed"
    LISTENING = "listening"
    SENTENCES = "sentences"
    DICTATION = "dictation"
    SPEAK = "speak"


class MistakeType(str, Enum):
    """Classification of a wrong answer."""

    ACCENT = "accent"
    SPELLING = "spelling"
    GENDER = "gender"
    WRONG = "wrong"


class TimeOfDay(str, Enum):
    """Time-of-day performance buckets."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class LearningStyle(str, Enum):
    """Learning style classifications."""

    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    READING = "reading"


class InsightSeverity(str, Enum):
    """Severity of weak spots and insights."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class WeakSpotType(str, Enum):
    """What a weak spot is about."""

    CATEGORY = "category"
    ERROR_TYPE = "error_type"
    DIRECTION = "direction"
    TIME_BASED = "time_based"
    MODE = "mode"


class InsightType(str, Enum):
    """User-facing insight kinds."""

    FOCUS_CATEGORY = "focus_category"
    FOCUS_ERROR_TYPE = "focus_error_type"
    CHANGE_MODE = "change_mode"
    INCREASE_DIFFICULTY = "increase_difficulty"
    REDUCE_LOAD = "reduce_load"
    OPTIMAL_TIME = "optimal_time"
    STREAK_AT_RISK = "streak_at_risk"


class RecommendationType(str, Enum):
    """Kinds of daily study recommendations."""

    CATEGORY_FOCUS = "category_focus"
    WEAKNESS_DRILL = "weakness_drill"
    FOCUS_ERROR_TYPE = "focus_error_type"
    REVIEW_DUE = "review_due"
    NEW_CARDS = "new_cards"
    MODE_PRACTICE = "mode_practice"
    STREAK_AT_RISK = "streak_at_risk"


class TrendDirection(str, Enum):
    """Direction of a performance trend."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class DifficultyTrend(str, Enum):
    """Direction of the latest difficulty change."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"
