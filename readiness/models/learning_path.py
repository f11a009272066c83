"""
LearningPath model - courses a student has marked as completed
"""
from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, ForeignKey, Uuid
from readiness.database import Base, utc_now
import uuid


class LearningPath(Base):
    """
    Learning paths table - one row per (student, completed course)
    """
    __tablename__ = "learning_paths"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=True)
    student_username = Column(String(128), nullable=False, index=True)
    course_id = Column(Uuid(as_uuid=True), ForeignKey("courses.id"), nullable=True)
    skill_gap = Column(String(255), nullable=False)
    priority = Column(Integer, nullable=False, default=1)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False)
    
    def __repr__(self):
        return f"<LearningPath(student={self.student_username}, course_id={self.course_id})>"
