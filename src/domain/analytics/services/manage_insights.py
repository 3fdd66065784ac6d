"""Insight lifecycle: creation, de-duplication, expiry and user actions.

Insights are never deleted. They are hidden once dismissed or expired, and
the expiry check happens on read.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from uuid import uuid4

from src.core.adaptive_config import DEFAULT_CONFIG, AdaptiveConfig
from src.domain.analytics.models.analytics_models import (
    DailyRecommendation,
    DifficultyProfile,
    LearningInsight,
    WeakSpot,
)
from src.domain.analytics.services.adjust_difficulty import MANUAL_REASON
from src.domain.shared.models import (
    InsightSeverity,
    InsightType,
    RecommendationType,
    WeakSpotType,
)

logger = logging.getLogger(__name__)

WEAK_SPOT_INSIGHT_TYPES = {
    WeakSpotType.CATEGORY: InsightType.FOCUS_CATEGORY,
    WeakSpotType.ERROR_TYPE: InsightType.FOCUS_ERROR_TYPE,
    WeakSpotType.DIRECTION: InsightType.CHANGE_MODE,
    WeakSpotType.TIME_BASED: InsightType.OPTIMAL_TIME,
    WeakSpotType.MODE: InsightType.FOCUS_CATEGORY,
}


def get_active_insights(
    insights: Sequence[LearningInsight], now: datetime
) -> list[LearningInsight]:
    """Insights that are neither dismissed nor expired at ``now``."""
    return [insight for insight in insights if insight.is_active(now)]


class InsightManager:
    """Turns analysis results into time-boxed insights."""

    def __init__(self, config: AdaptiveConfig = DEFAULT_CONFIG) -> None:
        """Initialize insight manager.

        Args:
            config: Engine configuration
        """
        self.config = config

    @property
    def lifetime(self) -> timedelta:
        return timedelta(hours=self.config.recommendation.insight_expiry_hours)

    def reconcile(
        self,
        existing: Sequence[LearningInsight],
        weak_spots: Sequence[WeakSpot],
        recommendation: DailyRecommendation | None,
        difficulty_profile: DifficultyProfile,
        now: datetime,
    ) -> list[LearningInsight]:
        """Add insights for new sources and keep every existing one.

        A source that already has a non-expired insight (dismissed or not)
        is not re-created.

        Args:
            existing: Current insights
            weak_spots: Weak spots from the latest analysis pass
            recommendation: Current daily plan, if any
            difficulty_profile: Current difficulty profile
            now: Reconciliation time

        Returns:
            Existing insights followed by newly created ones
        """
        represented = {
            insight.source_id for insight in existing if now <= insight.expires_at
        }
        created: list[LearningInsight] = []

        def add(insight: LearningInsight) -> None:
            if insight.source_id in represented:
                return
            represented.add(insight.source_id)
            created.append(insight)

        for insight in self._weak_spot_insights(weak_spots, now):
            add(insight)
        if recommendation is not None:
            for insight in self._recommendation_insights(recommendation, now):
                add(insight)
        for insight in self._difficulty_insights(difficulty_profile, now):
            add(insight)

        if created:
            logger.info(f"Created {len(created)} new insights")
        return [*existing, *created]

    def dismiss(
        self, insights: Sequence[LearningInsight], insight_id: str
    ) -> tuple[list[LearningInsight], bool]:
        """Mark an insight dismissed.

        Returns:
            Updated insights and whether an insight with that id exists
        """
        return self._flip(insights, insight_id, dismissed=True)

    def mark_action_taken(
        self, insights: Sequence[LearningInsight], insight_id: str
    ) -> tuple[list[LearningInsight], bool]:
        """Mark that the learner acted on an insight.

        Returns:
            Updated insights and whether an insight with that id exists
        """
        return self._flip(insights, insight_id, action_taken=True)

    def _flip(
        self, insights: Sequence[LearningInsight], insight_id: str, **flags: bool
    ) -> tuple[list[LearningInsight], bool]:
        found = False
        updated = []
        for insight in insights:
            if insight.id == insight_id:
                found = True
                insight = replace(insight, **flags)
            updated.append(insight)
        if not found:
            logger.warning(f"Insight {insight_id} not found")
        return updated, found

    def _new_insight(
        self,
        insight_type: InsightType,
        title: str,
        description: str,
        severity: InsightSeverity,
        source_id: str,
        now: datetime,
        data: dict | None = None,
    ) -> LearningInsight:
        return LearningInsight(
            id=f"insight-{uuid4()}",
            type=insight_type,
            title=title,
            description=description,
            severity=severity,
            created_at=now,
            expires_at=now + self.lifetime,
            data=data or {},
            source_id=source_id,
        )

    def _weak_spot_insights(
        self, weak_spots: Sequence[WeakSpot], now: datetime
    ) -> list[LearningInsight]:
        significant = [
            spot for spot in weak_spots if spot.severity != InsightSeverity.INFO
        ][: self.config.recommendation.max_insights_per_pass]
        return [
            self._new_insight(
                WEAK_SPOT_INSIGHT_TYPES[spot.type],
                title=f"Focus on {spot.target}",
                description=f"{spot.description}. {spot.suggested_action}.",
                severity=spot.severity,
                source_id=f"weak-spot:{spot.id}",
                now=now,
                data={
                    "weak_spot_id": spot.id,
                    "target": spot.target,
                    "score": round(spot.score, 1),
                    "affected_card_ids": list(spot.affected_card_ids),
                },
            )
            for spot in significant
        ]

    def _recommendation_insights(
        self, recommendation: DailyRecommendation, now: datetime
    ) -> list[LearningInsight]:
        return [
            self._new_insight(
                InsightType.STREAK_AT_RISK,
                title=item.title,
                description=item.description,
                severity=InsightSeverity.WARNING,
                source_id=f"recommendation:{item.id}:{recommendation.date}",
                now=now,
                data={"suggested_card_count": item.suggested_card_count},
            )
            for item in recommendation.recommendations
            if item.type == RecommendationType.STREAK_AT_RISK
        ]

    def _difficulty_insights(
        self, profile: DifficultyProfile, now: datetime
    ) -> list[LearningInsight]:
        if not profile.adjustment_history:
            return []
        latest = profile.adjustment_history[-1]
        if latest.reason == MANUAL_REASON or now - latest.timestamp > self.lifetime:
            return []

        if latest.new_level > latest.previous_level:
            insight_type = InsightType.INCREASE_DIFFICULTY
            title = "Level up!"
            description = (
                f"Difficulty raised from {latest.previous_level} to "
                f"{latest.new_level}. {latest.reason}."
            )
        else:
            insight_type = InsightType.REDUCE_LOAD
            title = "Easing the pace"
            description = (
                f"Difficulty lowered from {latest.previous_level} to "
                f"{latest.new_level}. {latest.reason}."
            )
        return [
            self._new_insight(
                insight_type,
                title=title,
                description=description,
                severity=InsightSeverity.INFO,
                source_id=f"difficulty:{latest.timestamp.isoformat()}",
                now=now,
                data={
                    "previous_level": latest.previous_level,
                    "new_level": latest.new_level,
                },
            )
        ]
