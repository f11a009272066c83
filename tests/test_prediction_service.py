import asyncio

import pytest

from readiness.errors import AIServiceError, ErrorKind
from readiness.schemas.assessment import (
    Difficulty, GapType, Level, Priority, QuestionResponse, Track,
)
from readiness.services.prediction_service import (
    PredictionService, fallback_prediction, provisional_level, weighted_score,
)

from conftest import FakeGateway

TRACK = Track.PROGRAMMING_DSA


def response(topic, is_correct, difficulty=Difficulty.MEDIUM):
    return QuestionResponse(
        question_id=f"q-{topic}", topic=topic, is_correct=is_correct, difficulty=difficulty
    )


def predict(gateway, correct, total, gaps, responses=()):
    service = PredictionService(gateway)
    return asyncio.run(service.predict("alice", TRACK, correct, total, gaps, list(responses)))


@pytest.mark.parametrize("correct, expected", [
    (0, Level.BEGINNER),
    (1, Level.BEGINNER),
    (2, Level.INTERMEDIATE),
    (3, Level.INTERMEDIATE),
    (4, Level.READY),
    (5, Level.READY),
])
def test_five_question_thresholds(correct, expected):
    assert provisional_level(correct, 5) == expected


def test_level_never_drops_as_score_rises():
    order = [Level.BEGINNER, Level.INTERMEDIATE, Level.READY]
    for total in range(1, 21):
        levels = [order.index(provisional_level(c, total)) for c in range(total + 1)]
        assert levels == sorted(levels)


def test_no_questions_is_beginner():
    assert provisional_level(0, 0) == Level.BEGINNER


def test_weighted_score_uses_difficulty():
    responses = [
        response("Arrays", True, Difficulty.EASY),
        response("Graphs", False, Difficulty.HARD),
        response("Hashing", True, Difficulty.MEDIUM),
    ]
    assert weighted_score(responses) == pytest.approx(50.0)
    assert weighted_score([]) == 0.0


def test_ai_prediction_overrides_level():
    gateway = FakeGateway({
        "level": "Intermediate",
        "confidence": 82,
        "skillGaps": [{"skill": "Sorting Algorithms", "gapType": "Practical", "priority": "High"}],
        "recommendations": ["Practice merge sort"],
        "estimatedReadinessWeeks": 3,
    })
    outcome = predict(gateway, 4, 5, ["Sorting Algorithms"])

    assert outcome.from_ai
    assert outcome.level == Level.INTERMEDIATE
    assert outcome.prediction.confidence == 82
    assert outcome.prediction.skill_gaps[0].gap_type == GapType.PRACTICAL
    assert outcome.prediction.skill_gaps[0].priority == Priority.HIGH
    assert outcome.notice is None


def test_invalid_fields_are_clamped():
    gateway = FakeGateway({
        "level": "Expert",
        "confidence": 180,
        "skillGaps": [{"skill": "Graphs", "gapType": "Other", "priority": "Urgent"}, "noise"],
        "estimatedReadinessWeeks": -2,
    })
    outcome = predict(gateway, 2, 5, ["Graphs"])
    prediction = outcome.prediction

    assert prediction.level == Level.INTERMEDIATE
    assert prediction.confidence == 100
    assert prediction.estimated_readiness_weeks == 0
    assert [g.skill for g in prediction.skill_gaps] == ["Graphs"]
    assert prediction.skill_gaps[0].gap_type == GapType.CONCEPTUAL
    assert prediction.skill_gaps[0].priority == Priority.MEDIUM


@pytest.mark.parametrize("payload", [
    {"level": ["Ready"]},
    {"level": {"value": "Ready"}},
    {"skillGaps": 3},
    {"skillGaps": "Graphs"},
    {"skillGaps": [{"skill": "Graphs", "gapType": ["Practical"], "priority": {"p": 1}}]},
    {"recommendations": 5},
    {"confidence": [90], "estimatedReadinessWeeks": {"weeks": 2}},
])
def test_wrongly_shaped_fields_take_defaults(payload):
    outcome = predict(FakeGateway(payload), 3, 5, ["Graphs"])
    prediction = outcome.prediction

    assert outcome.from_ai
    assert prediction.level == Level.INTERMEDIATE
    assert 0 <= prediction.confidence <= 100
    assert [g.skill for g in prediction.skill_gaps] == ["Graphs"]
    assert prediction.skill_gaps[0].gap_type == GapType.CONCEPTUAL
    assert prediction.skill_gaps[0].priority == Priority.MEDIUM
    assert prediction.recommendations == []


def test_single_string_recommendation_is_kept_whole():
    outcome = predict(FakeGateway({"level": "Ready", "recommendations": "Revise graphs"}), 5, 5, [])
    assert outcome.prediction.recommendations == ["Revise graphs"]


def test_zero_confidence_is_preserved():
    outcome = predict(FakeGateway({"level": "Beginner", "confidence": 0}), 1, 5, [])
    assert outcome.prediction.confidence == 0


def test_missing_numbers_use_defaults():
    outcome = predict(FakeGateway({"level": "Beginner", "confidence": None}), 1, 5, [])
    assert outcome.prediction.confidence == 75
    assert outcome.prediction.estimated_readiness_weeks == 0


def test_payload_that_cannot_be_sanitized_uses_fallback(monkeypatch):
    def broken(data, provisional, gaps):
        raise TypeError("unhashable type: 'list'")

    monkeypatch.setattr(PredictionService, "sanitize", staticmethod(broken))
    outcome = predict(FakeGateway({"level": "Ready"}), 4, 5, ["Graphs"])

    assert not outcome.from_ai
    assert outcome.level == Level.READY
    assert outcome.error.kind == ErrorKind.PARSE_ERROR
    assert outcome.notice.title == "Standard Scoring"


@pytest.mark.parametrize("correct, level, weeks", [
    (5, Level.READY, 0),
    (3, Level.INTERMEDIATE, 4),
    (1, Level.BEGINNER, 8),
])
def test_quota_exhausted_uses_fallback(correct, level, weeks):
    gateway = FakeGateway(AIServiceError(ErrorKind.QUOTA_EXHAUSTED, "payment required"))
    outcome = predict(gateway, correct, 5, ["Graphs"])

    assert not outcome.from_ai
    assert outcome.level == level
    assert outcome.prediction.estimated_readiness_weeks == weeks
    assert outcome.prediction.confidence == 75
    assert outcome.notice.title == "Credits Exhausted"
    assert outcome.error.kind == ErrorKind.QUOTA_EXHAUSTED


def test_unparseable_prediction_uses_fallback():
    outcome = predict(FakeGateway("I think they are ready."), 4, 5, [])
    assert not outcome.from_ai
    assert outcome.level == Level.READY
    assert outcome.notice.title == "Standard Scoring"


def test_fallback_prediction_content():
    prediction = fallback_prediction(
        Level.INTERMEDIATE, ["Model Evaluation", "Joins"], Track.DATA_SCIENCE_ML
    )
    assert [g.gap_type for g in prediction.skill_gaps] == [GapType.CONCEPTUAL, GapType.PRACTICAL]
    assert all(g.priority == Priority.MEDIUM for g in prediction.skill_gaps)
    assert prediction.recommendations[0] == "Focus on mastering Model Evaluation fundamentals"
    assert len(prediction.recommendations) == 3

    no_gaps = fallback_prediction(Level.READY, [], Track.DATA_SCIENCE_ML)
    assert no_gaps.recommendations[0] == "Focus on mastering Data Science & ML fundamentals"
