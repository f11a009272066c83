import asyncio

import pytest

from readiness.errors import AIServiceError, ErrorKind
from readiness.schemas.assessment import Track
from readiness.services.verification_service import VerificationService, compare_locally

from conftest import FakeGateway

TRACK = Track.PROGRAMMING_DSA


def verified(index, is_correct, correct_answer, topic="ignored"):
    return {
        "index": index,
        "isCorrect": is_correct,
        "correctAnswer": correct_answer,
        "explanation": f"Because {correct_answer}.",
        "topic": topic,
    }


def verify(gateway, questions, answers):
    return asyncio.run(VerificationService(gateway).verify(questions, answers, TRACK))


def test_ai_verdicts_are_used(questions):
    # "O(N log N)" is accepted by the verifier although it differs from the key
    answers = [0, 1, 3, "O(N log N)", "HashMap"]
    gateway = FakeGateway([
        verified(0, True, 0),
        verified(1, False, 2),
        verified(2, True, 3),
        verified(3, True, "O(n log n)"),
        verified(4, True, "HashMap"),
    ])
    outcome = verify(gateway, questions, answers)

    assert not outcome.degraded
    assert [r.is_correct for r in outcome.results] == [True, False, True, True, True]
    assert outcome.correct_count == 4
    assert outcome.gaps == ["Sorting Algorithms"]
    assert "Sorting Algorithms" in gateway.prompts[0]


def test_verifier_may_correct_answer_key(questions):
    gateway = FakeGateway([
        verified(0, False, 1),
        verified(1, True, 2),
        verified(2, True, 3),
        verified(3, True, "O(n log n)"),
        verified(4, True, "HashMap"),
    ])
    outcome = verify(gateway, questions, [0, 2, 3, "O(n log n)", "HashMap"])

    assert outcome.results[0].canonical_correct_answer == 1
    assert outcome.questions[0].correct_answer == 1
    assert outcome.questions[0].explanation == "Because 1."
    assert questions[0].correct_answer == 0


def test_results_reordered_by_index(questions):
    items = [
        verified(4, True, "HashMap"),
        verified(3, True, "O(n log n)"),
        verified(2, True, 3),
        verified(1, False, 2),
        verified(0, True, 0),
    ]
    outcome = verify(FakeGateway(items), questions, [0, 1, 3, "O(n log n)", "HashMap"])
    assert [r.is_correct for r in outcome.results] == [True, False, True, True, True]


def test_length_mismatch_falls_back_to_local_grading(questions):
    answers = [0, 1, 3, "o(n log n) ", "Hash Map"]
    gateway = FakeGateway([verified(0, True, 0), verified(1, True, 2)])
    outcome = verify(gateway, questions, answers)

    assert outcome.degraded
    assert outcome.error.kind == ErrorKind.PARSE_ERROR
    assert [r.is_correct for r in outcome.results] == [True, False, True, True, False]
    assert outcome.gaps == ["Sorting Algorithms", "Hashing"]


def test_unavailable_verifier_falls_back(questions, correct_answers):
    gateway = FakeGateway(AIServiceError(ErrorKind.UNAVAILABLE, "connection reset"))
    outcome = verify(gateway, questions, correct_answers)

    assert outcome.degraded
    assert outcome.error.kind == ErrorKind.UNAVAILABLE
    assert outcome.correct_count == 5
    assert outcome.gaps == []


def test_missing_boolean_verdict_falls_back(questions, correct_answers):
    items = [verified(i, "yes", 0) for i in range(5)]
    outcome = verify(FakeGateway(items), questions, correct_answers)
    assert outcome.degraded


def test_answers_must_match_questions(questions):
    with pytest.raises(ValueError):
        verify(FakeGateway(), questions, [0, 2])


def test_local_comparison_rules(questions):
    arrays, sorting, graphs, complexity, hashing = questions

    assert compare_locally(arrays, 0)
    assert not compare_locally(arrays, 1)
    assert compare_locally(complexity, "  o(N LOG n)")
    assert not compare_locally(complexity, "O(nlogn)")
    assert compare_locally(hashing, "hashmap")
    assert not compare_locally(hashing, "Hash Map")


def test_gaps_deduplicated_in_question_order(questions):
    duplicated = [q.model_copy(update={"topic": "Graphs"}) for q in questions]
    outcome = VerificationService(FakeGateway()).verify_locally(duplicated, [1, 1, 1, "x", "y"])
    assert outcome.gaps == ["Graphs"]
