"""
Login/logout API endpoints
"""
from fastapi import APIRouter, Depends
import logging

from readiness.api.deps import get_attempt_registry, get_session, get_session_store
from readiness.schemas.auth import LoginRequest, SessionResponse
from readiness.schemas.common import MessageResponse
from readiness.services.attempt_registry import AttemptRegistry
from readiness.services.session_store import SessionContext, SessionStore

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _session_response(session: SessionContext) -> SessionResponse:
    return SessionResponse(
        token=session.token,
        username=session.username,
        role=session.role,
        created_at=session.created_at,
    )


@router.post("/login", response_model=SessionResponse, status_code=201)
async def login(request: LoginRequest, store: SessionStore = Depends(get_session_store)):
    """
    Start a session for a username and role

    No password is checked; the returned token identifies the session.
    """
    return _session_response(store.login(request.username, request.role))


@router.get("/me", response_model=SessionResponse)
async def whoami(session: SessionContext = Depends(get_session)):
    return _session_response(session)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
):
    store.logout(session.token)
    attempts.discard_owner(session.username)
    return MessageResponse(message="Logged out")
