"""
Resume model - keyword-scored resume snapshots
"""
from sqlalchemy import Column, String, Integer, Text, TIMESTAMP, ForeignKey, Uuid
from readiness.database import Base, JSONDocument, utc_now
import uuid


class Resume(Base):
    """
    Resumes table - extracted text plus the score breakdown computed from it
    """
    __tablename__ = "resumes"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=True)
    student_username = Column(String(128), nullable=False, index=True)
    file_name = Column(String(255))
    extracted_text = Column(Text)
    overall_score = Column(Integer)
    skills_found = Column(JSONDocument)
    analysis_json = Column(JSONDocument)
    created_at = Column(TIMESTAMP, default=utc_now, nullable=False, index=True)
    updated_at = Column(TIMESTAMP, default=utc_now, onupdate=utc_now)
    
    def __repr__(self):
        return f"<Resume(student={self.student_username}, score={self.overall_score})>"
