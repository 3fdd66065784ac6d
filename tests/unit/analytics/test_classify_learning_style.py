"""Tests for learning style classification."""

import pytest

from src.domain.analytics.models.analytics_models import LearningStyleProfile
from src.domain.analytics.services.classify_learning_style import (
    LearningStyleClassifier,
)
from src.domain.shared.models import LearningStyle, StudyMode


@pytest.fixture
def classifier():
    """Learning style classifier with default config."""
    return LearningStyleClassifier()


class TestClassify:
    """Test learning style profile updates."""

    def test_default_profile_without_sessions(self, classifier, now):
        """Test that a new learner keeps the neutral default profile."""
        current = LearningStyleProfile()

        profile = classifier.classify([], current, now)

        assert profile is current
        assert profile.primary_style is None
        assert profile.secondary_style is None
        assert set(profile.style_scores.values()) == {50.0}
        assert profile.confidence_level == 0

    def test_too_few_sessions(self, classifier, make_record, now):
        """Test that four sessions aren't enough to classify."""
        current = LearningStyleProfile()
        history = [make_record() for _ in range(4)]
        assert classifier.classify(history, current, now) is current

    def test_typing_learner(self, classifier, make_record, now):
        """Test that strong typing sessions make a kinesthetic primary style."""
        history = [
            make_record(mode=StudyMode.TYPE_ANSWER, accuracy=90, quality=4.5)
            for _ in range(3)
        ] + [
            make_record(mode=StudyMode.LISTENING, accuracy=40, quality=2.0)
            for _ in range(2)
        ]

        profile = classifier.classify(history, LearningStyleProfile(), now)

        assert profile.primary_style == LearningStyle.KINESTHETIC
        assert profile.secondary_style == LearningStyle.READING
        assert profile.style_scores[LearningStyle.KINESTHETIC] == pytest.approx(91)
        assert profile.style_scores[LearningStyle.AUDITORY] == pytest.approx(46)
        assert profile.style_scores[LearningStyle.VISUAL] == 0
        assert profile.confidence_level == pytest.approx(100)
        assert profile.last_updated == now
        assert set(profile.mode_effectiveness) == {
            StudyMode.TYPE_ANSWER,
            StudyMode.LISTENING,
        }

    def test_no_secondary_when_far_behind(self, classifier, make_record, now):
        """Test that a runner-up more than 15 points behind isn't secondary."""
        history = [
            make_record(mode=StudyMode.LISTENING, accuracy=95, quality=5.0)
            for _ in range(3)
        ] + [
            make_record(mode=StudyMode.MULTIPLE_CHOICE, accuracy=30, quality=1.5)
            for _ in range(2)
        ]

        profile = classifier.classify(history, LearningStyleProfile(), now)

        assert profile.primary_style == LearningStyle.AUDITORY
        assert profile.secondary_style is None

    def test_confidence_scales_with_cards(self, classifier, make_record, now):
        """Test that small sessions lower confidence."""
        history = [make_record(mode=StudyMode.FLIP, cards=2) for _ in range(5)]

        profile = classifier.classify(history, LearningStyleProfile(), now)

        assert profile.confidence_level == pytest.approx(50)


class TestModeEffectiveness:
    """Test per-mode scoring."""

    def test_retention_from_next_session(self, classifier, make_record):
        """Test retention as accuracy on the same categories next time."""
        history = [
            make_record(mode=StudyMode.FLIP, categories={"Verbs": (10, 50)}),
            make_record(
                mode=StudyMode.TYPE_ANSWER,
                categories={"Verbs": (10, 70), "Food": (10, 10)},
            ),
        ]

        result = classifier.mode_effectiveness(StudyMode.FLIP, [0], history)

        assert result.retention_rate == pytest.approx(70)

    def test_retention_falls_back_to_quality(self, classifier, make_record):
        """Test the quality-based retention estimate without a later session."""
        history = [make_record(quality=3.0)]

        result = classifier.mode_effectiveness(StudyMode.FLIP, [0], history)

        assert result.retention_rate == pytest.approx(60)

    def test_engagement_against_plan(self, classifier, make_record):
        """Test engagement as completion of the planned card count."""
        history = [make_record(cards=10, planned=20), make_record(cards=30, planned=20)]

        result = classifier.mode_effectiveness(StudyMode.FLIP, [0, 1], history)

        assert result.engagement_score == pytest.approx(75)
        assert result.cards_reviewed == 40

    def test_response_time_capped(self, classifier, make_record):
        """Test that stalled sessions don't dominate the response time."""
        history = [make_record(response_time_ms=600000)]

        result = classifier.mode_effectiveness(StudyMode.FLIP, [0], history)

        assert result.average_response_time_ms == 60000

    def test_score_in_range(self, classifier, make_record):
        """Test that effectiveness is always within 0-100."""
        history = [make_record(accuracy=100, quality=5.0)]
        result = classifier.mode_effectiveness(StudyMode.FLIP, [0], history)
        assert 0 <= result.effectiveness_score <= 100


class TestRecommendMode:
    """Test study mode recommendations."""

    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            (2, StudyMode.FLIP),
            (5, StudyMode.MULTIPLE_CHOICE),
            (8, StudyMode.TYPE_ANSWER),
        ],
    )
    def test_without_style(self, classifier, level, expected):
        """Test level-based defaults when no style is known."""
        assert classifier.recommend_mode(LearningStyleProfile(), level) == expected

    def test_typing_cards(self, classifier):
        """Test that cards needing typing always get typing mode."""
        profile = LearningStyleProfile(primary_style=LearningStyle.AUDITORY)
        assert classifier.recommend_mode(profile, 2, card_needs_typing=True) == (
            StudyMode.TYPE_ANSWER
        )

    def test_auditory_hard(self, classifier):
        """Test that hard levels prefer production modes in the style."""
        profile = LearningStyleProfile(primary_style=LearningStyle.AUDITORY)
        assert classifier.recommend_mode(profile, 8) == StudyMode.DICTATION

    def test_auditory_easy_falls_back(self, classifier):
        """Test the first style mode when no easy mode matches."""
        profile = LearningStyleProfile(primary_style=LearningStyle.AUDITORY)
        assert classifier.recommend_mode(profile, 2) == StudyMode.LISTENING

    def test_visual_easy(self, classifier):
        """Test that easy levels prefer recognition modes."""
        profile = LearningStyleProfile(primary_style=LearningStyle.VISUAL)
        assert classifier.recommend_mode(profile, 1) == StudyMode.FLIP
