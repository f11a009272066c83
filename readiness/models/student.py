"""
Student model - one row per username, created lazily on first submission
"""
from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, Uuid
from readiness.database import Base, utc_now
import uuid


class Student(Base):
    """
    Students table - username is the natural key used by every other table
    """
    __tablename__ = "students"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(128), unique=True, nullable=False, index=True)
    email = Column(String(255))
    department = Column(String(100))
    year = Column(Integer)
    phone = Column(String(32))
    parent_email = Column(String(255))
    is_registered = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False)
    updated_at = Column(TIMESTAMP, default=utc_now, onupdate=utc_now)
    
    def __repr__(self):
        return f"<Student(username={self.username}, registered={self.is_registered})>"
