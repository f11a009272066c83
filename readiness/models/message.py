"""
Message model - student/TPO direct messages
"""
from sqlalchemy import Column, String, Boolean, Text, TIMESTAMP, Uuid
from readiness.database import Base, utc_now
import uuid


class Message(Base):
    """
    Messages table - rows are only inserted and flagged read, never edited
    """
    __tablename__ = "messages"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sender_username = Column(String(128), nullable=False, index=True)
    sender_role = Column(String(20), nullable=False)
    recipient_username = Column(String(128), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False, index=True)
    
    def to_event(self) -> dict:
        """Row payload delivered to realtime subscribers"""
        return {
            "id": str(self.id),
            "sender_username": self.sender_username,
            "sender_role": self.sender_role,
            "recipient_username": self.recipient_username,
            "content": self.content,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
    
    def __repr__(self):
        return f"<Message(from={self.sender_username}, to={self.recipient_username})>"
