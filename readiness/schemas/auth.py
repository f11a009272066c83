"""
Pydantic schemas for login and logout
"""
from pydantic import Field, field_validator
from datetime import datetime

from readiness.schemas.common import WireModel
from readiness.services.session_store import Role


class LoginRequest(WireModel):
    username: str = Field(..., min_length=1, max_length=128)
    role: Role = Role.STUDENT

    @field_validator("username")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        return value


class SessionResponse(WireModel):
    token: str
    username: str
    role: Role
    created_at: datetime
