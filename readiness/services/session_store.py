"""
Login sessions

login(username, role) hands out an opaque bearer token. There is no password
and no cryptographic identity; the store only remembers who holds which token.
One store lives on each application instance (app.state.sessions).
"""
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class Role(str, Enum):
    STUDENT = "student"
    TPO = "tpo"


@dataclass(frozen=True)
class SessionContext:
    username: str
    role: Role
    token: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_tpo(self) -> bool:
        return self.role == Role.TPO


class SessionStore:
    """Token -> SessionContext"""
    
    def __init__(self):
        self._sessions: Dict[str, SessionContext] = {}
    
    def login(self, username: str, role: Role) -> SessionContext:
        username = username.strip()
        if not username:
            raise ValueError("Username is required")
        
        session = SessionContext(username=username, role=Role(role), token=secrets.token_urlsafe(32))
        self._sessions[session.token] = session
        logger.info(f"Login: {username} ({session.role.value})")
        return session
    
    def get(self, token: str) -> Optional[SessionContext]:
        return self._sessions.get(token)
    
    def logout(self, token: str) -> bool:
        session = self._sessions.pop(token, None)
        if session is not None:
            logger.info(f"Logout: {session.username}")
        return session is not None
    
    def __len__(self):
        return len(self._sessions)
