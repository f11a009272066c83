import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:1/0")
os.environ.setdefault("GEMINI_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from readiness.api import deps
from readiness.database import get_db, init_db
from readiness.errors import AIServiceError, ErrorKind
from readiness.main import app
from readiness.services.attempt_registry import AttemptRegistry
from readiness.services.chat_service import ChatService
from readiness.services.learning_path_service import LearningPathService
from readiness.services.prediction_service import PredictionService
from readiness.services.profile_service import ProfileService
from readiness.services.question_service import QuestionService
from readiness.services.session_store import SessionStore
from readiness.services.submission_service import SubmissionService
from readiness.services.verification_service import VerificationService
from readiness.utils.rate_limiter import rate_limiter
from readiness.utils.realtime import RealtimeBroker


class FakeGateway:
    """Scripted stand-in for the Gemini gateway; replies are consumed in order"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def _next(self):
        if not self.replies:
            raise AIServiceError(ErrorKind.UNAVAILABLE, "no scripted reply")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete(self, prompt, *, system_instruction=None, temperature=None):
        self.prompts.append(prompt)
        reply = self._next()
        return reply if isinstance(reply, str) else json.dumps(reply)

    async def stream(self, messages, *, system_instruction=None):
        self.prompts.append(messages)
        reply = self._next()
        for chunk in reply:
            yield chunk


class DictCache:
    """In-memory cache with the CacheService interface"""

    enabled = True

    def __init__(self):
        self.plans = {}

    def get_plan(self, username, result_id):
        return self.plans.get((username, str(result_id)))

    def store_plan(self, username, result_id, plan):
        self.plans[(username, str(result_id))] = json.loads(json.dumps(plan))
        return True

    def invalidate(self, username=None):
        keys = [k for k in self.plans if username is None or k[0] == username]
        for key in keys:
            del self.plans[key]
        return len(keys)


def mcq(qid, topic, correct=1, difficulty="Medium"):
    return {
        "id": qid,
        "type": "mcq",
        "question": f"Which statement about {topic} is true?",
        "options": ["A", "B", "C", "D"],
        "correctAnswer": correct,
        "topic": topic,
        "explanation": f"Option {correct} is correct.",
        "difficulty": difficulty,
    }


def short(qid, topic, answer, difficulty="Hard"):
    return {
        "id": qid,
        "type": "coding",
        "question": f"Give the answer for {topic}.",
        "correctAnswer": answer,
        "topic": topic,
        "explanation": f"The answer is {answer}.",
        "difficulty": difficulty,
    }


@pytest.fixture
def raw_questions():
    return [
        mcq("q-1", "Arrays", correct=0, difficulty="Easy"),
        mcq("q-2", "Sorting Algorithms", correct=2),
        mcq("q-3", "Graphs", correct=3),
        short("q-4", "Complexity", "O(n log n)"),
        short("q-5", "Hashing", "HashMap", difficulty="Medium"),
    ]


@pytest.fixture
def correct_answers():
    """One right answer per raw question"""
    return [0, 2, 3, "O(n log n)", "HashMap"]


@pytest.fixture
def questions(raw_questions):
    return QuestionService(FakeGateway()).normalize(raw_questions, len(raw_questions))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache():
    return DictCache()


@pytest.fixture
def client(session_factory, gateway, cache):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    verifier = VerificationService(gateway)
    predictor = PredictionService(gateway)
    overrides = {
        get_db: override_get_db,
        deps.get_question_service: lambda: QuestionService(gateway),
        deps.get_verification_service: lambda: verifier,
        deps.get_prediction_service: lambda: predictor,
        deps.get_submission_service: lambda: SubmissionService(verifier=verifier, predictor=predictor),
        deps.get_learning_path_service: lambda: LearningPathService(gateway),
        deps.get_profile_service: lambda: ProfileService(gateway),
        deps.get_chat_service: lambda: ChatService(gateway),
        deps.get_cache: lambda: cache,
    }
    app.dependency_overrides.update(overrides)
    app.state.sessions = SessionStore()
    app.state.attempts = AttemptRegistry()
    app.state.broker = RealtimeBroker()
    rate_limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def login(client, username, role="student"):
    response = client.post("/api/auth/login", json={"username": username, "role": role})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def student_headers(client):
    return login(client, "alice")


@pytest.fixture
def tpo_headers(client):
    return login(client, "TPO Admin", role="tpo")
