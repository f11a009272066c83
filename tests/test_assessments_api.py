from readiness.errors import AIServiceError, ErrorKind
from readiness.services.question_service import QuestionService

from conftest import login, short

TRACK = "Programming & DSA"


def verdicts(raw_questions, answers):
    return [
        {
            "index": i,
            "isCorrect": str(a).strip().upper() == str(q["correctAnswer"]).strip().upper(),
            "correctAnswer": q["correctAnswer"],
            "explanation": q["explanation"],
            "topic": q["topic"],
        }
        for i, (q, a) in enumerate(zip(raw_questions, answers))
    ]


def start(client, headers, track=TRACK):
    return client.post("/api/assessments/attempts", json={"track": track}, headers=headers)


def answer(client, headers, attempt_id, value):
    return client.post(
        f"/api/assessments/attempts/{attempt_id}/answers", json={"answer": value}, headers=headers
    )


def test_full_attempt(client, gateway, student_headers, raw_questions):
    answers = [0, 1, 3, "o(n log n)", "HashMap"]
    gateway.queue(raw_questions)

    started = start(client, student_headers)
    assert started.status_code == 201
    view = started.json()
    attempt_id = view["attemptId"]
    assert view["state"] == "ready"
    assert view["index"] == 0
    assert view["totalQuestions"] == 5
    assert view["question"]["topic"] == "Arrays"
    assert "correctAnswer" not in view["question"]

    for i, value in enumerate(answers[:-1]):
        view = answer(client, student_headers, attempt_id, value).json()
        assert view["index"] == i + 1
        assert view["answered"] == i + 1

    gateway.queue(verdicts(raw_questions, answers), AIServiceError(ErrorKind.QUOTA_EXHAUSTED, "no credits"))
    view = answer(client, student_headers, attempt_id, answers[-1]).json()

    assert view["state"] == "results"
    assert view["saved"] is True
    assert view["degraded"] is False
    result = view["result"]
    assert result["correctAnswers"] == 4
    assert result["level"] == "Ready"
    assert result["gaps"] == ["Sorting Algorithms"]
    assert result["aiPrediction"]["estimatedReadinessWeeks"] == 0
    assert [n["title"] for n in view["notices"]] == ["Credits Exhausted"]
    assert [g["isCorrect"] for g in view["graded"]] == [True, False, True, True, True]
    assert view["graded"][1]["yourAnswer"] == 1
    assert view["graded"][1]["correctAnswer"] == 2

    latest = client.get("/api/assessments/results/latest", headers=student_headers).json()
    assert latest["id"] == result["id"]
    history = client.get("/api/assessments/results", headers=student_headers).json()
    assert len(history) == 1


def test_blank_answer_rejected(client, gateway, student_headers, raw_questions):
    gateway.queue(raw_questions)
    attempt_id = start(client, student_headers).json()["attemptId"]

    response = answer(client, student_headers, attempt_id, None)
    assert response.status_code == 422
    assert response.json()["error"] == "answer_required"

    view = client.get(f"/api/assessments/attempts/{attempt_id}", headers=student_headers).json()
    assert view["index"] == 0
    assert view["answered"] == 0


def test_blank_short_answer_rejected(client, gateway, student_headers):
    gateway.queue([short("q-1", "Complexity", "O(1)")])
    response = client.post(
        "/api/assessments/attempts", json={"track": TRACK, "numQuestions": 1}, headers=student_headers
    )
    attempt_id = response.json()["attemptId"]
    assert answer(client, student_headers, attempt_id, "   ").status_code == 422


def test_generation_failure_then_retry(client, gateway, student_headers, raw_questions):
    gateway.queue(AIServiceError(ErrorKind.RATE_LIMITED, "slow down", retry_after=30))
    response = start(client, student_headers)

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "rate_limited"
    assert body["retry_after"] == 30
    attempt_id = body["attempt_id"]

    view = client.get(f"/api/assessments/attempts/{attempt_id}", headers=student_headers).json()
    assert view["state"] == "error"
    assert view["error"]["error"] == "rate_limited"

    gateway.queue(raw_questions)
    retried = client.post(f"/api/assessments/attempts/{attempt_id}/retry", headers=student_headers)
    assert retried.status_code == 200
    assert retried.json()["state"] == "ready"


def test_wrong_question_count_is_parse_error(client, gateway, student_headers, raw_questions):
    gateway.queue(raw_questions[:3])
    response = start(client, student_headers)
    assert response.status_code == 502
    assert response.json()["error"] == "parse_error"


def test_malformed_prediction_still_reaches_results(client, gateway, student_headers, raw_questions, correct_answers):
    gateway.queue(raw_questions)
    attempt_id = start(client, student_headers).json()["attemptId"]
    for value in correct_answers[:-1]:
        answer(client, student_headers, attempt_id, value)

    gateway.queue(
        verdicts(raw_questions, correct_answers),
        {"level": ["Ready"], "skillGaps": 3, "recommendations": 5, "confidence": 0},
    )
    view = answer(client, student_headers, attempt_id, correct_answers[-1]).json()

    assert view["state"] == "results"
    assert view["saved"] is True
    assert view["result"]["level"] == "Ready"
    assert view["result"]["aiPrediction"]["confidence"] == 0
    assert view["result"]["aiPrediction"]["recommendations"] == []


def test_non_string_difficulty_still_loads(client, gateway, student_headers, raw_questions):
    raw_questions[0]["difficulty"] = ["Easy"]
    gateway.queue(raw_questions)
    response = start(client, student_headers)

    assert response.status_code == 201
    assert response.json()["question"]["difficulty"] == "Medium"


def test_unexpected_generation_error_can_be_retried(monkeypatch, client, gateway, student_headers, raw_questions):
    def broken(self, items, count):
        raise RuntimeError("boom")

    monkeypatch.setattr(QuestionService, "normalize", broken)
    gateway.queue(raw_questions)
    response = start(client, student_headers)

    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "unavailable"
    attempt_id = body["attempt_id"]
    view = client.get(f"/api/assessments/attempts/{attempt_id}", headers=student_headers).json()
    assert view["state"] == "error"

    monkeypatch.undo()
    gateway.queue(raw_questions)
    retried = client.post(f"/api/assessments/attempts/{attempt_id}/retry", headers=student_headers)
    assert retried.status_code == 200
    assert retried.json()["state"] == "ready"



def test_track_change_resets_answers(client, gateway, student_headers, raw_questions):
    gateway.queue(raw_questions)
    attempt_id = start(client, student_headers).json()["attemptId"]
    answer(client, student_headers, attempt_id, 0)

    gateway.queue(raw_questions)
    response = client.post(
        f"/api/assessments/attempts/{attempt_id}/track",
        json={"track": "Data Science & ML"},
        headers=student_headers,
    )
    view = response.json()
    assert view["track"] == "Data Science & ML"
    assert view["index"] == 0
    assert view["answered"] == 0
    assert "Data Science & ML" in gateway.prompts[-1]


def test_answering_after_results_conflicts(client, gateway, student_headers, raw_questions, correct_answers):
    gateway.queue(raw_questions)
    attempt_id = start(client, student_headers).json()["attemptId"]
    for value in correct_answers[:-1]:
        answer(client, student_headers, attempt_id, value)
    gateway.queue(verdicts(raw_questions, correct_answers), {"level": "Ready", "confidence": 95})
    assert answer(client, student_headers, attempt_id, correct_answers[-1]).json()["state"] == "results"

    response = answer(client, student_headers, attempt_id, 0)
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_new_attempt_discards_previous(client, gateway, student_headers, raw_questions):
    gateway.queue(raw_questions, raw_questions)
    first = start(client, student_headers).json()["attemptId"]
    start(client, student_headers)

    response = client.get(f"/api/assessments/attempts/{first}", headers=student_headers)
    assert response.status_code == 404


def test_attempts_are_private(client, gateway, student_headers, raw_questions):
    gateway.queue(raw_questions)
    attempt_id = start(client, student_headers).json()["attemptId"]
    bob = login(client, "bob")

    response = client.get(f"/api/assessments/attempts/{attempt_id}", headers=bob)
    assert response.status_code == 404


def test_auth_required(client, tpo_headers):
    assert start(client, {}).status_code == 401
    assert start(client, tpo_headers).status_code == 403
    assert client.get("/api/assessments/results/latest", headers=login(client, "zed")).status_code == 404
