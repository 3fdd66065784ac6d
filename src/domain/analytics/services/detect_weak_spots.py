"""Weak spot detection.

Identifies categories, error types, study directions, times of day and
confusable word pairs the learner struggles with, and scores them so the
recommendation layer can build targeted practice decks.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    CategoryPerformance,
    SessionPerformanceRecord,
    TimePerformance,
    WeakSpot,
)
from src.domain.learning.models.learning_models import (
    CardProgress,
    ConfusionPair,
    Flashcard,
    MistakeRecord,
)
from src.domain.shared.models import (
    InsightSeverity,
    MistakeType,
    StudyDirection,
    WeakSpotType,
)

logger = logging.getLogger(__name__)

ERROR_TYPE_DESCRIPTIONS = {
    MistakeType.ACCENT: "Accent marks are causing frequent errors",
    MistakeType.SPELLING: "Spelling mistakes are common",
    MistakeType.GENDER: "Gender (masculine/feminine) confusion is frequent",
    MistakeType.WRONG: "Many completely incorrect answers",
}

ERROR_TYPE_ACTIONS = {
    MistakeType.ACCENT: "Practice with typing mode to reinforce accent placement",
    MistakeType.SPELLING: "Focus on dictation mode for spelling practice",
    MistakeType.GENDER: "Pay attention to article hints (el/la, un/una)",
    MistakeType.WRONG: "Review cards more frequently with flip mode first",
}


def slugify(value: str) -> str:
    """Lowercase a label and collapse whitespace into dashes."""
    return re.sub(r"\s+", "-", value.strip().lower())


def confusion_id(pair: ConfusionPair) -> str:
    """Stable weak spot id for a confusion pair."""
    return f"confusion-{slugify(pair.word1)}-{slugify(pair.word2)}"


class WeakSpotDetector:
    """Rule-based weak spot detection."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize weak spot detector.

        Args:
            config: Engine configuration
        """
        self.config = config

    def detect(
        self,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        mistakes: Sequence[MistakeRecord],
        confusion_pairs: Sequence[ConfusionPair],
        categories: Sequence[CategoryPerformance],
        time_performances: Sequence[TimePerformance],
        history: Sequence[SessionPerformanceRecord],
        now: datetime,
        previous: Iterable[WeakSpot] = (),
    ) -> list[WeakSpot]:
        """Run every detection rule and merge the results.

        Args:
            cards: Flashcard snapshot
            progress: Progress snapshot
            mistakes: Mistake history
            confusion_pairs: Confusion pairs from the mistake tracker
            categories: Category aggregates from the current pass
            time_performances: Time bucket aggregates from the current pass
            history: Session history
            now: Detection time
            previous: Weak spots from the previous pass

        Returns:
            Weak spots sorted by score (highest first), then confusion
            count, then id
        """
        card_categories = {card.id: card.category for card in cards}

        spots: list[WeakSpot] = []
        spots.extend(self._category_weak_spots(cards, categories, mistakes, card_categories, now))
        spots.extend(self._error_type_weak_spots(mistakes, now))
        spots.extend(self._direction_weak_spots(progress, mistakes, now))
        spots.extend(self._time_weak_spots(cards, time_performances, history))
        spots.extend(self._confusion_weak_spots(cards, confusion_pairs, now))

        first_seen = {
            spot.id: spot.detected_at for spot in previous if spot.detected_at
        }
        for spot in spots:
            spot.detected_at = first_seen.get(spot.id, now)
            spot.last_updated = now

        # Capped confusion scores tie at 100; more confusions rank first.
        confusion_counts = {
            confusion_id(pair): pair.confusion_count for pair in confusion_pairs
        }
        spots.sort(
            key=lambda spot: (-spot.score, -confusion_counts.get(spot.id, 0), spot.id)
        )
        logger.debug(f"Detected {len(spots)} weak spots")
        return spots

    def severity_for(self, score: float) -> InsightSeverity:
        """Map a 0-100 score onto a severity level."""
        weak = self.config.weak_spot
        if score >= weak.critical_severity_threshold:
            return InsightSeverity.CRITICAL
        if score >= weak.warning_severity_threshold:
            return InsightSeverity.WARNING
        return InsightSeverity.INFO

    def recency_multiplier(
        self, mistakes: Iterable[MistakeRecord], now: datetime
    ) -> float:
        """Boost factor from the share of mistakes inside the recent window.

        Returns 1.0 without mistakes and ``RECENCY_WEIGHT_FACTOR`` when every
        mistake is recent.
        """
        window = timedelta(days=self.config.scheduling.recent_mistake_window_days)
        total = 0
        recent = 0
        for mistake in mistakes:
            total += 1
            if now - mistake.timestamp < window:
                recent += 1
        if total == 0:
            return 1.0
        factor = self.config.weak_spot.recency_weight_factor
        return 1 + (factor - 1) * recent / total

    def _category_weak_spots(
        self,
        cards: Sequence[Flashcard],
        categories: Sequence[CategoryPerformance],
        mistakes: Sequence[MistakeRecord],
        card_categories: dict[str, str],
        now: datetime,
    ) -> list[WeakSpot]:
        weak = self.config.weak_spot
        spots = []

        for stats in categories:
            if stats.subcategory is not None:
                continue
            accuracy = stats.accuracy
            if stats.reviewed_cards < weak.min_category_samples or accuracy is None:
                continue

            is_weak_ease = stats.average_ease_factor < weak.weak_ease_factor_threshold
            is_weak_accuracy = accuracy < weak.weak_accuracy_threshold
            if not (is_weak_ease or is_weak_accuracy):
                continue

            ease_span = weak.ease_factor_ceiling - weak.ease_factor_floor
            ease_deficit = (weak.ease_factor_ceiling - stats.average_ease_factor) / ease_span
            ease_deficit = min(1.0, max(0.0, ease_deficit))
            accuracy_deficit = 1 - accuracy

            base = 100 * (
                weak.ease_deficit_weight * ease_deficit
                + weak.accuracy_deficit_weight * accuracy_deficit
            )
            category_mistakes = [
                m for m in mistakes if card_categories.get(m.card_id) == stats.category
            ]
            score = min(100.0, base * self.recency_multiplier(category_mistakes, now))

            spots.append(
                WeakSpot(
                    id=f"category-{slugify(stats.category)}",
                    type=WeakSpotType.CATEGORY,
                    target=stats.category,
                    severity=self.severity_for(score),
                    score=score,
                    description=(
                        f"Struggling with {stats.category} cards "
                        f"({round(accuracy * 100)}% accuracy)"
                    ),
                    suggested_action=(
                        f"Focus on {stats.category} with intensive typing practice"
                    ),
                    affected_card_ids=[
                        card.id for card in cards if card.category == stats.category
                    ],
                )
            )
        return spots

    def _error_type_weak_spots(
        self, mistakes: Sequence[MistakeRecord], now: datetime
    ) -> list[WeakSpot]:
        weak = self.config.weak_spot
        window = sorted(mistakes, key=lambda m: m.timestamp)[-weak.error_analysis_window :]
        if len(window) < weak.min_samples_for_analysis:
            return []

        recent_window = timedelta(days=self.config.scheduling.recent_mistake_window_days)
        weighted: dict[MistakeType, float] = dict.fromkeys(MistakeType, 0.0)
        for mistake in window:
            is_recent = now - mistake.timestamp < recent_window
            weighted[mistake.error_type] += weak.recency_weight_factor if is_recent else 1.0
        total = sum(weighted.values())

        spots = []
        for error_type, count in weighted.items():
            ratio = count / total
            if ratio <= weak.error_type_dominance_threshold:
                continue
            score = min(100.0, ratio * 100)
            spots.append(
                WeakSpot(
                    id=f"error-{error_type.value}",
                    type=WeakSpotType.ERROR_TYPE,
                    target=error_type.value,
                    severity=self.severity_for(score),
                    score=score,
                    description=ERROR_TYPE_DESCRIPTIONS[error_type],
                    suggested_action=ERROR_TYPE_ACTIONS[error_type],
                    affected_card_ids=sorted(
                        {m.card_id for m in window if m.error_type == error_type}
                    ),
                )
            )
        return spots

    def _direction_weak_spots(
        self,
        progress: Sequence[CardProgress],
        mistakes: Sequence[MistakeRecord],
        now: datetime,
    ) -> list[WeakSpot]:
        weak = self.config.weak_spot
        totals = dict.fromkeys(StudyDirection, 0)
        correct = dict.fromkeys(StudyDirection, 0)
        for entry in progress:
            totals[entry.direction] += entry.total_reviews
            correct[entry.direction] += entry.correct_reviews

        if any(total < weak.min_samples_for_analysis for total in totals.values()):
            return []

        accuracies = {d: correct[d] / totals[d] for d in StudyDirection}
        weaker = min(StudyDirection, key=lambda d: (accuracies[d], d.value))
        stronger = next(d for d in StudyDirection if d != weaker)
        difference = accuracies[stronger] - accuracies[weaker]
        if difference <= weak.direction_asymmetry_threshold:
            return []

        direction_mistakes = [m for m in mistakes if m.direction == weaker]
        score = min(
            100.0, difference * 100 * self.recency_multiplier(direction_mistakes, now)
        )
        affected = sorted(
            {
                entry.card_id
                for entry in progress
                if entry.direction == weaker
                and entry.total_reviews > 0
                and (
                    entry.ease_factor < weak.weak_ease_factor_threshold
                    or (entry.accuracy or 0.0) < weak.weak_accuracy_threshold
                )
            }
        )
        label = weaker.value.replace("-", " ")
        return [
            WeakSpot(
                id=f"direction-{weaker.value}",
                type=WeakSpotType.DIRECTION,
                target=weaker.value,
                severity=self.severity_for(score),
                score=score,
                description=(
                    f"Accuracy for {label} is {round(difference * 100)} points "
                    f"below the other direction"
                ),
                suggested_action=f"Practice more cards in the {label} direction",
                affected_card_ids=affected,
            )
        ]

    def _time_weak_spots(
        self,
        cards: Sequence[Flashcard],
        time_performances: Sequence[TimePerformance],
        history: Sequence[SessionPerformanceRecord],
    ) -> list[WeakSpot]:
        weak = self.config.weak_spot
        total_sessions = sum(t.sessions_count for t in time_performances)
        if total_sessions == 0:
            return []

        overall = (
            sum(t.average_accuracy * t.sessions_count for t in time_performances)
            / total_sessions
        )
        best = max(
            time_performances, key=lambda t: (t.optimal_score, t.time_of_day.value)
        )

        spots = []
        for bucket in time_performances:
            if bucket.sessions_count < weak.min_time_bucket_sessions:
                continue
            difference = (overall - bucket.average_accuracy) / 100
            if difference <= weak.time_accuracy_difference_threshold:
                continue

            practiced = {
                category
                for record in history
                if record.time_of_day == bucket.time_of_day
                for category in record.category_breakdown
            }
            score = min(100.0, difference * 100)
            spots.append(
                WeakSpot(
                    id=f"time-{bucket.time_of_day.value}",
                    type=WeakSpotType.TIME_BASED,
                    target=bucket.time_of_day.value,
                    severity=self.severity_for(score),
                    score=score,
                    description=(
                        f"Lower performance during {bucket.time_of_day.value} sessions"
                    ),
                    suggested_action=(
                        f"Try studying during {best.time_of_day.value} for better results"
                    ),
                    affected_card_ids=[
                        card.id for card in cards if card.category in practiced
                    ],
                )
            )
        return spots

    def _confusion_weak_spots(
        self,
        cards: Sequence[Flashcard],
        confusion_pairs: Sequence[ConfusionPair],
        now: datetime,
    ) -> list[WeakSpot]:
        weak = self.config.weak_spot
        recent_window = timedelta(days=self.config.scheduling.recent_mistake_window_days)

        significant = sorted(
            (p for p in confusion_pairs if p.confusion_count >= weak.min_confusion_count),
            key=lambda p: (-p.confusion_count, p.word1, p.word2),
        )[: weak.max_confusion_weak_spots]

        spots = []
        for pair in significant:
            score = pair.confusion_count * weak.confusion_score_per_count
            if pair.last_confused and now - pair.last_confused < recent_window:
                score *= weak.recency_weight_factor
            words = {pair.word1.strip().lower(), pair.word2.strip().lower()}
            severity = (
                InsightSeverity.WARNING
                if pair.confusion_count >= weak.confusion_warning_count
                else InsightSeverity.INFO
            )
            spots.append(
                WeakSpot(
                    id=confusion_id(pair),
                    type=WeakSpotType.MODE,
                    target=f"{pair.word1} / {pair.word2}",
                    severity=severity,
                    score=min(100.0, score),
                    description=f'Often confusing "{pair.word1}" with "{pair.word2}"',
                    suggested_action=(
                        "Practice these words separately to strengthen distinction"
                    ),
                    affected_card_ids=[
                        card.id
                        for card in cards
                        if card.front.strip().lower() in words
                        or card.back.strip().lower() in words
                    ],
                )
            )
        return spots
