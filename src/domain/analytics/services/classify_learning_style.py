"""Learning style classification from per-mode session effectiveness."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    LearningStyleProfile,
    ModeEffectiveness,
    SessionPerformanceRecord,
)
from src.domain.shared.models import LearningStyle, StudyMode

logger = logging.getLogger(__name__)


class LearningStyleClassifier:
    """Scores study modes and maps them onto learning styles."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize learning style classifier.

        Args:
            config: Engine configuration
        """
        self.config = config

    def classify(
        self,
        history: Sequence[SessionPerformanceRecord],
        current: LearningStyleProfile,
        now: datetime,
    ) -> LearningStyleProfile:
        """Recompute the learning style profile from session history.

        Args:
            history: Session history (oldest first)
            current: Profile before this update
            now: Update time

        Returns:
            New profile, or ``current`` when there are too few sessions
        """
        style_config = self.config.learning_style
        if len(history) < style_config.min_sessions_for_detection:
            logger.debug(
                f"Not enough sessions for style detection ({len(history)})"
            )
            return current

        sessions_by_mode: dict[StudyMode, list[int]] = {}
        for index, record in enumerate(history):
            sessions_by_mode.setdefault(record.mode, []).append(index)

        effectiveness = {
            mode: self.mode_effectiveness(mode, indexes, history)
            for mode, indexes in sessions_by_mode.items()
        }

        style_scores: dict[LearningStyle, float] = {}
        for style in LearningStyle:
            scored = [
                effectiveness[mode].effectiveness_score
                for mode in self.config.style_modes.get(style, ())
                if mode in effectiveness
            ]
            style_scores[style] = sum(scored) / len(scored) if scored else 0.0

        ranked = sorted(
            LearningStyle,
            key=lambda style: (-style_scores[style], list(LearningStyle).index(style)),
        )
        primary = ranked[0] if style_scores[ranked[0]] > 0 else None
        secondary = None
        if primary is not None:
            runner_up = ranked[1]
            margin = style_scores[primary] - style_scores[runner_up]
            if (
                style_scores[runner_up] > 0
                and margin <= style_config.secondary_style_margin
            ):
                secondary = runner_up

        total_sessions = sum(m.sessions_count for m in effectiveness.values())
        weighted_coverage = sum(
            m.sessions_count * min(1.0, m.cards_reviewed / style_config.min_mode_samples)
            for m in effectiveness.values()
        )
        confidence = 100 * weighted_coverage / total_sessions if total_sessions else 0.0

        logger.info(
            f"Learning style updated: primary={primary}, secondary={secondary}, "
            f"confidence={confidence:.0f}"
        )
        return LearningStyleProfile(
            primary_style=primary,
            secondary_style=secondary,
            style_scores=style_scores,
            mode_effectiveness=effectiveness,
            last_updated=now,
            confidence_level=confidence,
        )

    def mode_effectiveness(
        self,
        mode: StudyMode,
        indexes: Sequence[int],
        history: Sequence[SessionPerformanceRecord],
    ) -> ModeEffectiveness:
        """Score one study mode.

        Args:
            mode: Mode being scored
            indexes: Positions in ``history`` of sessions in this mode
            history: Full session history, used for the retention lookahead

        Returns:
            Effectiveness summary for the mode
        """
        style_config = self.config.learning_style
        sessions = [history[i] for i in indexes]
        count = len(sessions)

        accuracy = sum(s.accuracy for s in sessions) / count
        quality = sum(s.average_quality for s in sessions) / count
        response_time = (
            sum(
                min(s.average_response_time_ms, style_config.max_response_time_ms)
                for s in sessions
            )
            / count
        )

        retained = [
            value
            for value in (self._next_session_accuracy(i, history) for i in indexes)
            if value is not None
        ]
        if retained:
            retention = sum(retained) / len(retained)
        else:
            retention = min(100.0, quality * 20)

        engagement = 100 * sum(self._completion(s) for s in sessions) / count

        score = (
            style_config.accuracy_weight * accuracy
            + style_config.retention_weight * retention
            + style_config.quality_weight * quality / 5 * 100
            + style_config.engagement_weight * engagement
        )
        return ModeEffectiveness(
            mode=mode,
            sessions_count=count,
            cards_reviewed=sum(s.cards_reviewed for s in sessions),
            average_accuracy=accuracy,
            average_quality=quality,
            retention_rate=retention,
            average_response_time_ms=response_time,
            engagement_score=engagement,
            effectiveness_score=max(0.0, min(100.0, score)),
        )

    def recommend_mode(
        self,
        profile: LearningStyleProfile,
        difficulty_level: int,
        card_needs_typing: bool = False,
    ) -> StudyMode:
        """Pick a study mode for the next card.

        Args:
            profile: Current learning style profile
            difficulty_level: Current global difficulty level
            card_needs_typing: Whether the card must be typed (accents, spelling)

        Returns:
            Recommended study mode
        """
        if card_needs_typing:
            return StudyMode.TYPE_ANSWER

        effects = self.config.difficulty_effects
        is_easy = difficulty_level in effects.easy_mode_levels
        is_hard = difficulty_level in effects.hard_mode_levels

        if profile.primary_style is None:
            if is_easy:
                return StudyMode.FLIP
            if is_hard:
                return StudyMode.TYPE_ANSWER
            return StudyMode.MULTIPLE_CHOICE

        modes = self.config.style_modes[profile.primary_style]
        if is_easy:
            for mode in (StudyMode.FLIP, StudyMode.MULTIPLE_CHOICE):
                if mode in modes:
                    return mode
        elif is_hard:
            for mode in (StudyMode.TYPE_ANSWER, StudyMode.DICTATION):
                if mode in modes:
                    return mode
        return modes[0]

    def _next_session_accuracy(
        self, index: int, history: Sequence[SessionPerformanceRecord]
    ) -> float | None:
        """Accuracy on the same categories at the next later session."""
        categories = set(history[index].category_breakdown)
        if not categories:
            return None
        for later in history[index + 1 :]:
            shared = [
                later.category_breakdown[c]
                for c in categories
                if c in later.category_breakdown and later.category_breakdown[c].count
            ]
            if shared:
                total = sum(stats.count for stats in shared)
                return sum(stats.accuracy * stats.count for stats in shared) / total
        return None

    def _completion(self, session: SessionPerformanceRecord) -> float:
        planned = session.planned_cards
        if not planned:
            planned = self.config.recommendation.min_session_cards
        return min(1.0, session.cards_reviewed / planned)
