"""
AssessmentRecord model - one immutable row per submitted attempt
"""
from sqlalchemy import Column, String, Integer, Boolean, TIMESTAMP, ForeignKey, Uuid
from readiness.database import Base, JSONDocument, utc_now
import uuid


class AssessmentRecord(Base):
    """
    Assessment results table - verified score, level, gaps and the winning prediction
    """
    __tablename__ = "assessment_results"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=True)
    student_username = Column(String(128), nullable=False, index=True)
    track = Column(String(64), nullable=False)
    correct_answers = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    level = Column(String(20), nullable=False)
    gaps = Column(JSONDocument)  # ["Sorting Algorithms", "Graphs"]
    question_responses = Column(JSONDocument)  # [{questionId, topic, isCorrect, difficulty}]
    ai_prediction = Column(JSONDocument)
    confidence_score = Column(Integer)
    degraded = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False, index=True)
    
    def __repr__(self):
        return (
            f"<AssessmentRecord(student={self.student_username}, track={self.track}, "
            f"score={self.correct_answers}/{self.total_questions}, level={self.level})>"
        )
