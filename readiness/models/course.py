"""
Course model - catalogue the learning path ranks against
"""
from sqlalchemy import Column, String, Integer, Float, Boolean, Text, TIMESTAMP, Uuid
from readiness.database import Base, utc_now
import uuid


class Course(Base):
    """
    Courses table - external courses tagged with the skill they cover
    """
    __tablename__ = "courses"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    platform = Column(String(100), nullable=False)
    url = Column(String(500), nullable=False)
    skill_covered = Column(String(255), nullable=False)
    track = Column(String(64), nullable=False, index=True)
    difficulty_level = Column(String(20), nullable=False, default="Beginner")
    is_free = Column(Boolean, nullable=False, default=True)
    rating = Column(Float)
    duration_hours = Column(Integer)
    instructor = Column(String(255))
    description = Column(Text)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False)
    
    def __repr__(self):
        return f"<Course(title={self.title}, skill={self.skill_covered})>"
