"""Daily study plans and next-session composition.

Combines the analysis outputs (weak spots, category and time aggregates,
difficulty level, learning style) with the current card and progress
snapshots into a ranked daily plan and a concrete card mix for the next
session.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TypeVar

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    CardDifficulty,
    CategoryPerformance,
    DailyRecommendation,
    DifficultyDistribution,
    LearningStyleProfile,
    SessionComposition,
    StudyRecommendation,
    TimePerformance,
    WeakSpot,
)
from src.domain.learning.models.learning_models import (
    CardProgress,
    Flashcard,
    MistakeRecord,
    ProgressIndex,
    UserProgressSnapshot,
    index_progress,
)
from src.domain.shared.models import (
    SPECIAL_CHARACTERS,
    InsightSeverity,
    MistakeType,
    RecommendationType,
    StudyDirection,
    StudyMode,
    TimeOfDay,
    WeakSpotType,
)

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

BASE_PRIORITY = {
    RecommendationType.STREAK_AT_RISK: 100,
    RecommendationType.WEAKNESS_DRILL: 80,
    RecommendationType.FOCUS_ERROR_TYPE: 70,
    RecommendationType.REVIEW_DUE: 60,
    RecommendationType.CATEGORY_FOCUS: 50,
    RecommendationType.NEW_CARDS: 40,
    RecommendationType.MODE_PRACTICE: 30,
}

SEVERITY_BONUS = {
    InsightSeverity.CRITICAL: 20,
    InsightSeverity.WARNING: 10,
    InsightSeverity.INFO: 0,
}

OVERDUE_BONUS = 10
RECENCY_BONUS_MAX = 10

ERROR_TYPE_MODES = {
    MistakeType.ACCENT: StudyMode.TYPE_ANSWER,
    MistakeType.SPELLING: StudyMode.DICTATION,
    MistakeType.GENDER: StudyMode.TYPE_ANSWER,
    MistakeType.WRONG: StudyMode.FLIP,
}

DEFAULT_TIME_SLOTS = [TimeOfDay.MORNING, TimeOfDay.EVENING]


@dataclass
class DailyPlanRequest:
    """Request DTO for daily plan generation."""

    daily_goal: int
    difficulty_level: int

    def __post_init__(self) -> None:
        """Validate request data."""
        if self.daily_goal <= 0:
            raise ValueError("daily_goal must be positive")
        if not 1 <= self.difficulty_level <= 10:
            raise ValueError("difficulty_level must be between 1 and 10")


@dataclass
class SessionCompositionRequest:
    """Request DTO for next-session composition."""

    target_cards: int
    difficulty_level: int

    def __post_init__(self) -> None:
        """Validate request data."""
        if self.target_cards < 0:
            raise ValueError("target_cards cannot be negative")
        if not 1 <= self.difficulty_level <= 10:
            raise ValueError("difficulty_level must be between 1 and 10")


def apportion(total: int, weights: Mapping[K, float]) -> dict[K, int]:
    """Split ``total`` across keys by weight with largest-remainder rounding.

    The result always sums to ``total`` when at least one weight is
    positive. Remainder ties go to the key that appears first in
    ``weights``.

    Args:
        total: Number of slots to distribute
        weights: Relative weight per key

    Returns:
        Slot count per key with a positive weight
    """
    positive = [(key, weight) for key, weight in weights.items() if weight > 0]
    if total <= 0 or not positive:
        return {}

    weight_sum = sum(weight for _, weight in positive)
    quotas = [(key, total * weight / weight_sum) for key, weight in positive]
    counts = {key: math.floor(quota) for key, quota in quotas}

    leftover = total - sum(counts.values())
    by_remainder = sorted(
        range(len(quotas)),
        key=lambda i: (-(quotas[i][1] - counts[quotas[i][0]]), i),
    )
    for i in by_remainder[:leftover]:
        counts[quotas[i][0]] += 1
    return counts


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class RecommendationGenerator:
    """Builds the daily plan and the next-session composition."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize recommendation generator.

        Args:
            config: Engine configuration
        """
        self.config = config

    def new_card_ratio(self, difficulty_level: int) -> float:
        rec = self.config.recommendation
        if difficulty_level >= rec.advanced_difficulty_level:
            return rec.new_card_ratio_advanced
        return rec.new_card_ratio_beginner

    def estimate_minutes(self, card_count: int) -> int:
        """Estimated study time for a number of cards, capped per session."""
        rec = self.config.recommendation
        minutes = math.ceil(card_count * rec.seconds_per_card_estimate / 60)
        return min(rec.max_session_duration_minutes, minutes)

    # ------------------------------------------------------------------
    # Daily plan
    # ------------------------------------------------------------------

    def generate_daily_recommendations(
        self,
        request: DailyPlanRequest,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        weak_spots: Sequence[WeakSpot],
        categories: Sequence[CategoryPerformance],
        time_performances: Sequence[TimePerformance],
        style_profile: LearningStyleProfile,
        user_progress: UserProgressSnapshot,
        now: datetime,
    ) -> DailyRecommendation:
        """Generate the ranked study plan for today.

        Args:
            request: Daily goal and current difficulty level
            cards: Flashcard snapshot
            progress: Progress snapshot
            weak_spots: Weak spots from the latest analysis pass
            categories: Category aggregates from the latest analysis pass
            time_performances: Time bucket aggregates
            style_profile: Current learning style profile
            user_progress: Streak information
            now: Generation time (local wall clock)

        Returns:
            Daily plan with at most ``MAX_DAILY_RECOMMENDATIONS`` entries
        """
        rec = self.config.recommendation
        progress_index = index_progress(progress)

        candidates: list[StudyRecommendation] = []
        candidates.extend(self._streak_candidates(user_progress, request.daily_goal, now))
        candidates.extend(self._weak_spot_candidates(weak_spots, now))
        targeted = {c.target_category for c in candidates if c.target_category}
        candidates.extend(self._coverage_candidates(categories, targeted))
        candidates.extend(
            self._review_and_new_candidates(
                cards, progress_index, request, now
            )
        )
        candidates.extend(self._mode_candidates(style_profile))

        candidates.sort(key=lambda c: (-c.priority_score, c.id))
        selected = candidates[: rec.max_daily_recommendations]
        for priority, candidate in enumerate(selected, start=1):
            candidate.priority = priority

        slots = [
            t.time_of_day
            for t in sorted(
                (t for t in time_performances if t.sessions_count > 0),
                key=lambda t: (-t.optimal_score, t.time_of_day.value),
            )[:2]
        ]

        today = now.date().isoformat()
        logger.info(
            f"Generated {len(selected)} recommendations for {today} "
            f"from {len(candidates)} candidates"
        )
        return DailyRecommendation(
            id=f"daily-{today}",
            date=today,
            recommendations=selected,
            focus_areas=[w.target for w in weak_spots[: rec.max_focus_areas]],
            suggested_duration=sum(r.estimated_time_minutes for r in selected),
            optimal_time_slots=slots or list(DEFAULT_TIME_SLOTS),
            generated_at=now,
        )

    def _priority(
        self,
        rec_type: RecommendationType,
        severity: InsightSeverity,
        recency: float = 0.0,
        bonus: float = 0.0,
    ) -> float:
        return (
            BASE_PRIORITY[rec_type]
            + SEVERITY_BONUS[severity]
            + RECENCY_BONUS_MAX * max(0.0, min(1.0, recency))
            + bonus
        )

    def _streak_candidates(
        self, user_progress: UserProgressSnapshot, daily_goal: int, now: datetime
    ) -> list[StudyRecommendation]:
        rec = self.config.recommendation
        streak = user_progress.current_streak
        last_study = user_progress.last_study_date
        studied_today = (
            last_study is not None
            and last_study.astimezone(now.tzinfo).date() == now.date()
        )
        if streak < rec.streak_risk_threshold or studied_today:
            return []

        card_count = min(rec.streak_protect_card_cap, math.ceil(daily_goal / 2))
        return [
            StudyRecommendation(
                id="streak-protect",
                priority=0,
                type=RecommendationType.STREAK_AT_RISK,
                title="Protect Your Streak!",
                description=(
                    f"You're on a {streak}-day streak. Complete a quick review!"
                ),
                suggested_card_count=card_count,
                estimated_time_minutes=self.estimate_minutes(card_count),
                expected_benefit="Maintain learning momentum",
                reasoning="Streak protection is key to long-term success",
                severity=InsightSeverity.WARNING,
                priority_score=self._priority(
                    RecommendationType.STREAK_AT_RISK, InsightSeverity.WARNING
                ),
            )
        ]

    def _weak_spot_candidates(
        self, weak_spots: Sequence[WeakSpot], now: datetime
    ) -> list[StudyRecommendation]:
        rec = self.config.recommendation
        window_days = self.config.scheduling.recent_mistake_window_days
        candidates = []
        drills = 0
        category_focus_added = False

        for spot in weak_spots:
            if spot.severity == InsightSeverity.INFO or not spot.affected_card_ids:
                continue

            detected = spot.detected_at or now
            age_days = (now - detected).total_seconds() / 86400
            recency = 1 - age_days / window_days

            if spot.type == WeakSpotType.ERROR_TYPE:
                card_count = min(rec.weakness_drill_card_cap, len(spot.affected_card_ids))
                error_type = MistakeType(spot.target)
                candidates.append(
                    StudyRecommendation(
                        id=f"error-focus-{error_type.value}",
                        priority=0,
                        type=RecommendationType.FOCUS_ERROR_TYPE,
                        title=f"Fix {error_type.value} mistakes",
                        description=spot.description,
                        suggested_card_count=card_count,
                        estimated_time_minutes=self.estimate_minutes(card_count),
                        expected_benefit=spot.suggested_action,
                        reasoning=f"{round(spot.score)}% of recent mistakes",
                        target_mode=ERROR_TYPE_MODES[error_type],
                        severity=spot.severity,
                        priority_score=self._priority(
                            RecommendationType.FOCUS_ERROR_TYPE, spot.severity, recency
                        ),
                    )
                )
            elif spot.severity == InsightSeverity.CRITICAL:
                if drills >= rec.max_weakness_drills:
                    continue
                drills += 1
                card_count = min(rec.weakness_drill_card_cap, len(spot.affected_card_ids))
                candidates.append(
                    StudyRecommendation(
                        id=f"weakness-{spot.id}",
                        priority=0,
                        type=RecommendationType.WEAKNESS_DRILL,
                        title=f"Focus on {spot.target}",
                        description=spot.description,
                        suggested_card_count=card_count,
                        estimated_time_minutes=self.estimate_minutes(card_count),
                        expected_benefit=spot.suggested_action,
                        reasoning=(
                            f"This area needs attention (score: {round(spot.score)})"
                        ),
                        target_category=(
                            spot.target if spot.type == WeakSpotType.CATEGORY else None
                        ),
                        severity=spot.severity,
                        priority_score=self._priority(
                            RecommendationType.WEAKNESS_DRILL, spot.severity, recency
                        ),
                    )
                )
            elif spot.type == WeakSpotType.CATEGORY and not category_focus_added:
                category_focus_added = True
                card_count = min(rec.category_focus_cards, len(spot.affected_card_ids) * 2)
                candidates.append(
                    StudyRecommendation(
                        id=f"category-focus-{spot.id}",
                        priority=0,
                        type=RecommendationType.CATEGORY_FOCUS,
                        title=f"{spot.target} Boot Camp",
                        description=(
                            f"Intensive practice to strengthen your "
                            f"{spot.target.lower()} vocabulary"
                        ),
                        suggested_card_count=card_count,
                        estimated_time_minutes=self.estimate_minutes(card_count),
                        expected_benefit="Build confidence in this category",
                        reasoning="Focused practice accelerates mastery",
                        target_category=spot.target,
                        severity=spot.severity,
                        priority_score=self._priority(
                            RecommendationType.CATEGORY_FOCUS, spot.severity, recency
                        ),
                    )
                )
        return candidates

    def _coverage_candidates(
        self, categories: Sequence[CategoryPerformance], targeted: set[str]
    ) -> list[StudyRecommendation]:
        rec = self.config.recommendation
        low_coverage = []
        for stats in categories:
            if stats.subcategory is not None or stats.total_cards == 0:
                continue
            if stats.category in targeted:
                continue
            directions = stats.total_cards * len(StudyDirection)
            coverage = stats.reviewed_cards / directions
            if coverage < rec.low_coverage_threshold:
                low_coverage.append((coverage, stats, directions))

        low_coverage.sort(key=lambda item: (item[0], item[1].category))
        candidates = []
        for coverage, stats, directions in low_coverage[:1]:
            card_count = min(rec.category_focus_cards, directions - stats.reviewed_cards)
            candidates.append(
                StudyRecommendation(
                    id=f"coverage-{stats.category.lower().replace(' ', '-')}",
                    priority=0,
                    type=RecommendationType.CATEGORY_FOCUS,
                    title=f"Explore {stats.category}",
                    description=(
                        f"Only {round(coverage * 100)}% of {stats.category} "
                        f"cards have been reviewed"
                    ),
                    suggested_card_count=card_count,
                    estimated_time_minutes=self.estimate_minutes(card_count),
                    expected_benefit="Broaden your vocabulary coverage",
                    reasoning="Unpracticed categories fall behind quickly",
                    target_category=stats.category,
                    priority_score=self._priority(
                        RecommendationType.CATEGORY_FOCUS, InsightSeverity.INFO
                    ),
                )
            )
        return candidates

    def _review_and_new_candidates(
        self,
        cards: Sequence[Flashcard],
        progress_index: ProgressIndex,
        request: DailyPlanRequest,
        now: datetime,
    ) -> list[StudyRecommendation]:
        rec = self.config.recommendation
        due = 0
        overdue = 0
        for entry in progress_index.values():
            if entry.is_new() or not entry.is_due(now):
                continue
            due += 1
            if entry.next_review_date < now - timedelta(days=1):
                overdue += 1

        candidates = []
        if due > 0:
            card_count = min(due, request.daily_goal)
            candidates.append(
                StudyRecommendation(
                    id="daily-review",
                    priority=0,
                    type=RecommendationType.REVIEW_DUE,
                    title="Daily Review",
                    description=f"{due} cards are waiting for review",
                    suggested_card_count=card_count,
                    estimated_time_minutes=self.estimate_minutes(card_count),
                    expected_benefit="Maintain and strengthen memory",
                    reasoning=(
                        f"{overdue} cards are overdue"
                        if overdue
                        else "Consistent review is the core of spaced repetition"
                    ),
                    severity=InsightSeverity.WARNING if overdue else InsightSeverity.INFO,
                    priority_score=self._priority(
                        RecommendationType.REVIEW_DUE,
                        InsightSeverity.INFO,
                        bonus=OVERDUE_BONUS if overdue else 0,
                    ),
                )
            )

        backlog = sum(
            1
            for card in cards
            if all(
                (entry := progress_index.get((card.id, direction))) is None
                or entry.is_new()
                for direction in StudyDirection
            )
        )
        if backlog > 0 and due < request.daily_goal * rec.new_cards_due_ratio:
            ratio = self.new_card_ratio(request.difficulty_level)
            card_count = min(
                backlog,
                math.ceil(request.daily_goal * ratio),
                rec.new_cards_per_day_cap,
            )
            candidates.append(
                StudyRecommendation(
                    id="new-cards",
                    priority=0,
                    type=RecommendationType.NEW_CARDS,
                    title="Learn New Words",
                    description=f"{backlog} new words available to learn",
                    suggested_card_count=card_count,
                    estimated_time_minutes=self.estimate_minutes(card_count),
                    expected_benefit="Expand your vocabulary",
                    reasoning="New cards are introduced gradually for optimal retention",
                    priority_score=self._priority(
                        RecommendationType.NEW_CARDS, InsightSeverity.INFO
                    ),
                )
            )
        return candidates

    def _mode_candidates(
        self, style_profile: LearningStyleProfile
    ) -> list[StudyRecommendation]:
        rec = self.config.recommendation
        modes = style_profile.mode_effectiveness
        total_sessions = sum(m.sessions_count for m in modes.values())
        if total_sessions == 0:
            return []

        underused = [
            m
            for m in modes.values()
            if m.effectiveness_score >= rec.effective_mode_threshold
            and m.sessions_count / total_sessions < rec.underused_mode_share
        ]
        if not underused:
            return []

        best = max(underused, key=lambda m: (m.effectiveness_score, m.mode.value))
        card_count = rec.mode_practice_cards
        return [
            StudyRecommendation(
                id=f"mode-{best.mode.value}",
                priority=0,
                type=RecommendationType.MODE_PRACTICE,
                title=f"Try {best.mode.value.replace('-', ' ')} mode",
                description=(
                    f"You score {round(best.effectiveness_score)} in this mode "
                    f"but rarely use it"
                ),
                suggested_card_count=card_count,
                estimated_time_minutes=self.estimate_minutes(card_count),
                expected_benefit="Learn with the modes that work best for you",
                reasoning="Effective but underused study mode",
                target_mode=best.mode,
                priority_score=self._priority(
                    RecommendationType.MODE_PRACTICE, InsightSeverity.INFO
                ),
            )
        ]

    # ------------------------------------------------------------------
    # Session composition
    # ------------------------------------------------------------------

    def generate_session_composition(
        self,
        request: SessionCompositionRequest,
        cards: Sequence[Flashcard],
        progress: Sequence[CardProgress],
        weak_spots: Sequence[WeakSpot],
        style_profile: LearningStyleProfile,
        categories: Sequence[CategoryPerformance],
        mistakes: Sequence[MistakeRecord],
        now: datetime,
    ) -> SessionComposition:
        """Build the card mix for the next session.

        Args:
            request: Target size and current difficulty level
            cards: Flashcard snapshot
            progress: Progress snapshot
            weak_spots: Weak spots from the latest analysis pass
            style_profile: Current learning style profile
            categories: Category aggregates, used for card difficulty
            mistakes: Mistake history, used for card difficulty
            now: Composition time

        Returns:
            Composition whose breakdowns each sum to ``total_cards``
        """
        rec = self.config.recommendation
        progress_index = index_progress(progress)
        cards_by_id = {card.id: card for card in cards}

        total = min(request.target_cards, len(cards) * len(StudyDirection))
        if total <= 0:
            return SessionComposition()

        weak_ids = [
            card_id
            for card_id in dict.fromkeys(
                card_id for spot in weak_spots for card_id in spot.affected_card_ids
            )
            if card_id in cards_by_id
        ]
        new_pool: list[Flashcard] = []
        due_pool: list[Flashcard] = []
        for card in cards:
            for direction in StudyDirection:
                entry = progress_index.get((card.id, direction))
                if entry is None or entry.is_new():
                    new_pool.append(card)
                elif entry.is_due(now):
                    due_pool.append(card)

        weakness = min(math.ceil(total * rec.weakness_card_ratio), len(weak_ids))
        remainder = total - weakness
        new = min(
            round_half_up(remainder * self.new_card_ratio(request.difficulty_level)),
            len(new_pool),
        )
        review = remainder - new

        weak_pool = [cards_by_id[card_id] for card_id in weak_ids]
        review_pool = due_pool or list(cards)
        category_breakdown: dict[str, int] = {}
        for slots, pool in ((weakness, weak_pool), (new, new_pool), (review, review_pool)):
            for category, count in apportion(slots, _category_counts(pool)).items():
                category_breakdown[category] = category_breakdown.get(category, 0) + count

        candidates = list(
            dict.fromkeys(card.id for card in [*weak_pool, *new_pool, *due_pool])
        )
        difficulties = [
            self.calculate_card_difficulty(
                cards_by_id[card_id], progress_index, categories, mistakes
            )
            for card_id in candidates
        ]

        composition = SessionComposition(
            total_cards=total,
            new_cards=new,
            review_cards=review,
            weakness_cards=weakness,
            category_breakdown=category_breakdown,
            mode_breakdown=self._mode_breakdown(total, style_profile),
            estimated_duration=math.ceil(total * rec.seconds_per_card_estimate / 60),
            difficulty_distribution=self._difficulty_distribution(
                total, difficulties, request.difficulty_level
            ),
        )
        logger.debug(
            f"Session composition: {total} cards "
            f"({new} new, {review} review, {weakness} weakness)"
        )
        return composition

    def _mode_breakdown(
        self, total: int, style_profile: LearningStyleProfile
    ) -> dict[StudyMode, int]:
        style_config = self.config.learning_style
        if style_profile.primary_style is None:
            return {StudyMode.MIXED: total}

        weights: dict[StudyMode, float] = {}
        primary_mode = self.config.style_modes[style_profile.primary_style][0]
        weights[primary_mode] = style_config.primary_style_ratio
        mixed_ratio = 1 - style_config.primary_style_ratio
        if style_profile.secondary_style is not None:
            secondary_mode = self.config.style_modes[style_profile.secondary_style][0]
            weights[secondary_mode] = (
                weights.get(secondary_mode, 0.0) + style_config.secondary_style_ratio
            )
            mixed_ratio -= style_config.secondary_style_ratio
        weights[StudyMode.MIXED] = weights.get(StudyMode.MIXED, 0.0) + mixed_ratio
        return apportion(total, weights)

    def _difficulty_distribution(
        self, total: int, difficulties: Sequence[CardDifficulty], level: int
    ) -> DifficultyDistribution:
        if difficulties:
            weights = {"easy": 0.0, "medium": 0.0, "hard": 0.0}
            for difficulty in difficulties:
                if difficulty.combined_score < 4:
                    weights["easy"] += 1
                elif difficulty.combined_score < 7:
                    weights["medium"] += 1
                else:
                    weights["hard"] += 1
        else:
            easy_ratio = max(0.2, 0.5 - level * 0.03)
            hard_ratio = min(0.5, 0.1 + level * 0.04)
            weights = {
                "easy": easy_ratio,
                "medium": 1 - easy_ratio - hard_ratio,
                "hard": hard_ratio,
            }
        counts = apportion(total, weights)
        return DifficultyDistribution(
            easy=counts.get("easy", 0),
            medium=counts.get("medium", 0),
            hard=counts.get("hard", 0),
        )

    # ------------------------------------------------------------------
    # Card difficulty
    # ------------------------------------------------------------------

    def calculate_card_difficulty(
        self,
        card: Flashcard,
        progress_index: ProgressIndex,
        categories: Sequence[CategoryPerformance],
        mistakes: Sequence[MistakeRecord],
    ) -> CardDifficulty:
        """Estimate how hard a card is on a 1-10 scale.

        Intrinsic difficulty comes from the Catalan word itself (length,
        accents, grammatical gender). User difficulty comes from the card's
        ease factor, falling back to its category's ease, plus a bump per
        recorded mistake.

        Args:
            card: Card to score
            progress_index: Progress keyed by (card id, direction)
            categories: Category aggregates
            mistakes: Mistake history

        Returns:
            Card difficulty estimate
        """
        weak = self.config.weak_spot
        ease_span = weak.ease_factor_ceiling - weak.ease_factor_floor

        word_length = len(card.back)
        has_special = any(char in SPECIAL_CHARACTERS for char in card.back)
        intrinsic = (
            1
            + min(4.0, word_length / 3)
            + (2 if has_special else 0)
            + (1 if card.gender else 0)
        )
        intrinsic = min(10.0, intrinsic)

        category_complexity = 0.0
        for stats in categories:
            if stats.category == card.category and stats.subcategory is None:
                if stats.reviewed_cards > 0:
                    deficit = (weak.ease_factor_ceiling - stats.average_ease_factor) / ease_span
                    category_complexity = max(0.0, min(1.0, deficit))
                break

        reviewed = [
            entry
            for direction in StudyDirection
            if (entry := progress_index.get((card.id, direction))) is not None
            and entry.total_reviews > 0
        ]
        mistake_count = sum(1 for m in mistakes if m.card_id == card.id)

        if reviewed:
            ease = sum(entry.ease_factor for entry in reviewed) / len(reviewed)
            deficit = max(0.0, min(1.0, (weak.ease_factor_ceiling - ease) / ease_span))
            user = 1 + 9 * deficit
        else:
            ease = weak.ease_factor_ceiling
            user = 1 + 9 * category_complexity if category_complexity else 5.0
        user = min(10.0, user + min(3.0, mistake_count * 0.5))

        return CardDifficulty(
            card_id=card.id,
            intrinsic_difficulty=intrinsic,
            user_difficulty=user,
            combined_score=0.4 * intrinsic + 0.6 * user,
            word_length=word_length,
            has_special_chars=has_special,
            category_complexity=category_complexity,
            user_ease_factor=ease,
            mistake_count=mistake_count,
        )


def _category_counts(pool: Sequence[Flashcard]) -> dict[str, float]:
    counts: dict[str, float] = {}
    for card in pool:
        counts[card.category] = counts.get(card.category, 0) + 1
    return counts
