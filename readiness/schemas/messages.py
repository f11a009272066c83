"""
Pydantic schemas for student/TPO messaging
"""
from pydantic import ConfigDict, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime

from readiness.schemas.common import WireModel


class MessageCreate(WireModel):
    """Students may omit the recipient; it defaults to the TPO desk"""
    recipient_username: Optional[str] = Field(None, max_length=128)
    content: str = Field(..., max_length=4000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message content must not be blank")
        return value


class MessageOut(WireModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_username: str
    sender_role: str
    recipient_username: str
    content: str
    is_read: bool
    created_at: datetime


class Conversation(WireModel):
    student_username: str
    last_message: str
    last_message_at: datetime
    unread_count: int = 0


class UnreadCount(WireModel):
    count: int
