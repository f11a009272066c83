"""
Shared FastAPI dependencies

Session resolution and role guards, the per-app registries kept on
`app.state`, and one provider per service so tests can override them.
"""
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional

from readiness.services.attempt_registry import AttemptRegistry
from readiness.services.chat_service import ChatService, chat_service
from readiness.services.learning_path_service import LearningPathService, learning_path_service
from readiness.services.prediction_service import PredictionService, prediction_service
from readiness.services.profile_service import ProfileService, profile_service
from readiness.services.question_service import QuestionService, question_service
from readiness.services.session_store import SessionContext, SessionStore
from readiness.services.submission_service import SubmissionService, submission_service
from readiness.services.verification_service import VerificationService, verification_service
from readiness.utils.cache import CacheService, cache_service

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_attempt_registry(request: Request) -> AttemptRegistry:
    return request.app.state.attempts


def get_broker(request: Request):
    return request.app.state.broker


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: SessionStore = Depends(get_session_store),
) -> SessionContext:
    """Resolve `Authorization: Bearer <token>` to the logged-in user"""
    session = store.get(credentials.credentials) if credentials else None
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Login required"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def require_tpo(session: SessionContext = Depends(get_session)) -> SessionContext:
    if not session.is_tpo:
        raise HTTPException(
            status_code=403,
            detail={"error": "forbidden", "message": "TPO access required"},
        )
    return session


def require_student(session: SessionContext = Depends(get_session)) -> SessionContext:
    if session.is_tpo:
        raise HTTPException(
            status_code=403,
            detail={"error": "forbidden", "message": "Student access required"},
        )
    return session


# Service providers; tests swap these through app.dependency_overrides

def get_question_service() -> QuestionService:
    return question_service


def get_verification_service() -> VerificationService:
    return verification_service


def get_prediction_service() -> PredictionService:
    return prediction_service


def get_submission_service() -> SubmissionService:
    return submission_service


def get_learning_path_service() -> LearningPathService:
    return learning_path_service


def get_profile_service() -> ProfileService:
    return profile_service


def get_chat_service() -> ChatService:
    return chat_service


def get_cache() -> CacheService:
    return cache_service
