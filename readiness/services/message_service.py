"""
Direct messages between students and the TPO
"""
import logging
from typing import Dict, List

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readiness.errors import PersistenceFailure
from readiness.models import Message
from readiness.schemas.messages import Conversation
from readiness.services.session_store import Role, SessionContext

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "messages"


class MessageService:
    """Message rows plus the read/unread bookkeeping around them"""
    
    def send(self, db: Session, sender: SessionContext, recipient_username: str, content: str) -> Message:
        message = Message(
            sender_username=sender.username,
            sender_role=sender.role.value,
            recipient_username=recipient_username,
            content=content,
        )
        try:
            db.add(message)
            db.commit()
            db.refresh(message)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not send message: {e}") from e
        
        logger.info(f"Message {message.id}: {sender.username} -> {recipient_username}")
        return message
    
    def thread(self, db: Session, username: str, other: str, mark_read: bool = True) -> List[Message]:
        """
        Both directions between two users, oldest first
        
        Messages from `other` to `username` are marked read.
        """
        messages = db.query(Message).filter(
            or_(
                and_(Message.sender_username == username, Message.recipient_username == other),
                and_(Message.sender_username == other, Message.recipient_username == username),
            )
        ).order_by(Message.created_at.asc()).all()
        
        if mark_read:
            updated = db.query(Message).filter(
                Message.sender_username == other,
                Message.recipient_username == username,
                Message.is_read.is_(False)
            ).update({Message.is_read: True}, synchronize_session="fetch")
            db.commit()
            if updated:
                logger.debug(f"Marked {updated} messages from {other} to {username} as read")
        
        return messages
    
    def conversations(self, db: Session, tpo_username: str) -> List[Conversation]:
        """
        One entry per student who wrote to, or was written to by, the TPO desk
        
        Newest conversation first. Unread counts cover student messages only.
        """
        messages = db.query(Message).filter(
            or_(
                Message.sender_role == Role.STUDENT.value,
                Message.recipient_username == tpo_username,
                Message.sender_username == tpo_username,
            )
        ).order_by(Message.created_at.desc()).all()
        
        by_student: Dict[str, Conversation] = {}
        for message in messages:
            if message.sender_role == Role.STUDENT.value:
                student = message.sender_username
            else:
                student = message.recipient_username
            
            conversation = by_student.get(student)
            if conversation is None:
                conversation = Conversation(
                    student_username=student,
                    last_message=message.content,
                    last_message_at=message.created_at,
                )
                by_student[student] = conversation
            
            if message.sender_role == Role.STUDENT.value and not message.is_read:
                conversation.unread_count += 1
        
        return list(by_student.values())
    
    def unread_count(self, db: Session, username: str) -> int:
        return db.query(Message).filter(
            Message.recipient_username == username,
            Message.is_read.is_(False)
        ).count()


# Global instance
message_service = MessageService()
