"""
Resume uploads and stored analyses
"""
import logging
import os
import uuid
from typing import Optional

import aiofiles
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readiness.config import settings
from readiness.errors import PersistenceFailure
from readiness.models import Resume
from readiness.schemas.assessment import Track
from readiness.schemas.resume import ResumeAnalysis, ResumeRecord
from readiness.services.resume_scoring import score_resume

logger = logging.getLogger(__name__)


def to_record(row: Resume) -> ResumeRecord:
    return ResumeRecord(
        id=row.id,
        student_username=row.student_username,
        file_name=row.file_name,
        overall_score=row.overall_score,
        analysis=ResumeAnalysis.model_validate(row.analysis_json),
        created_at=row.created_at,
    )


class ResumeService:
    """Scores resume text and keeps one row per analysis"""
    
    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = upload_dir or settings.RESUME_UPLOAD_DIR
    
    async def save_upload(self, content: bytes, filename: str) -> str:
        """
        Save an uploaded resume file to local storage
        
        Returns:
            Path of the stored file
        """
        os.makedirs(self.upload_dir, exist_ok=True)
        
        safe_name = os.path.basename(filename or "resume.txt")
        file_path = os.path.join(self.upload_dir, f"{uuid.uuid4().hex}_{safe_name}")
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)
        
        logger.info(f"Resume saved: {file_path} ({len(content)} bytes)")
        return file_path
    
    def analyze(
        self,
        db: Session,
        username: str,
        text: str,
        track: Optional[Track] = None,
        file_name: str = ""
    ) -> ResumeRecord:
        """Score the text and store the analysis for the student"""
        analysis = score_resume(text, track, file_name=file_name)
        row = Resume(
            student_username=username,
            file_name=file_name,
            extracted_text=text,
            overall_score=analysis.overall_score,
            skills_found=analysis.matched_skills,
            analysis_json=analysis.model_dump(mode="json", by_alias=True),
        )
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not save resume analysis: {e}") from e
        
        logger.info(f"Resume scored for {username}: {analysis.overall_score}")
        return to_record(row)
    
    def latest(self, db: Session, username: str) -> Optional[ResumeRecord]:
        row = db.query(Resume).filter(
            Resume.student_username == username
        ).order_by(Resume.created_at.desc()).first()
        return to_record(row) if row is not None else None


# Global instance
resume_service = ResumeService()
