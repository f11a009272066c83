"""
Persistence adapter for students and assessment results

Every SQLAlchemy failure is re-raised as PersistenceFailure so callers can
decide whether it is fatal.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from readiness.config import settings
from readiness.errors import PersistenceFailure
from readiness.models import AssessmentRecord, Student
from readiness.schemas.assessment import AIPrediction, AssessmentResult, QuestionResponse

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def student_email(username: str) -> str:
    """Placeholder address for lazily created students"""
    return f"{username.lower().replace(' ', '.')}@{settings.STUDENT_EMAIL_DOMAIN}"


def to_result(record: AssessmentRecord) -> AssessmentResult:
    """Convert a stored row back into the wire schema"""
    return AssessmentResult(
        id=record.id,
        student_username=record.student_username,
        track=record.track,
        correct_answers=record.correct_answers,
        total_questions=record.total_questions,
        level=record.level,
        gaps=record.gaps or [],
        question_responses=[QuestionResponse.model_validate(r) for r in record.question_responses or []],
        ai_prediction=AIPrediction.model_validate(record.ai_prediction) if record.ai_prediction else None,
        confidence_score=record.confidence_score,
        degraded=bool(record.degraded),
        created_at=record.created_at,
    )


class PersistenceAdapter:
    """Insert/select against students and assessment_results"""
    
    def get_student(self, db: Session, username: str) -> Optional[Student]:
        try:
            return db.query(Student).filter(Student.username == username).first()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load student {username}: {e}") from e
    
    def ensure_student(self, db: Session, username: str) -> Tuple[Student, bool]:
        """
        Create the student row if absent
        
        Uses INSERT ... ON CONFLICT (username) DO NOTHING where the dialect
        supports it, so concurrent submissions under one username never
        insert twice.
        
        Returns:
            (student, created)
        """
        values = {
            "username": username,
            "email": student_email(username),
            "is_registered": False,
        }
        try:
            insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(Student).values(**values).on_conflict_do_nothing(
                    index_elements=["username"]
                )
                created = db.execute(stmt).rowcount == 1
                db.commit()
            else:
                created = self._insert_if_absent(db, values)
            
            student = self.get_student(db, username)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not ensure student {username}: {e}") from e
        
        if student is None:
            raise PersistenceFailure(f"Student {username} missing after insert")
        if created:
            logger.info(f"Created student record for {username}")
        return student, created
    
    def _insert_if_absent(self, db: Session, values: dict) -> bool:
        if self.get_student(db, values["username"]) is not None:
            return False
        db.add(Student(**values))
        try:
            db.commit()
        except IntegrityError:
            # Lost the race to a concurrent insert
            db.rollback()
            return False
        return True
    
    def insert_result(self, db: Session, result: AssessmentResult, student: Optional[Student] = None) -> AssessmentResult:
        """Store one result; returns it with id and created_at filled in"""
        record = AssessmentRecord(
            student_id=student.id if student is not None else None,
            student_username=result.student_username,
            track=result.track.value,
            correct_answers=result.correct_answers,
            total_questions=result.total_questions,
            level=result.level.value,
            gaps=list(result.gaps),
            question_responses=[r.model_dump(mode="json", by_alias=True) for r in result.question_responses],
            ai_prediction=result.ai_prediction.model_dump(mode="json", by_alias=True) if result.ai_prediction else None,
            confidence_score=result.confidence_score,
            degraded=result.degraded,
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not save assessment result: {e}") from e
        
        logger.info(f"Saved assessment result {record.id} for {result.student_username}")
        return to_result(record)
    
    def latest_record(self, db: Session, username: str) -> Optional[AssessmentRecord]:
        try:
            return db.query(AssessmentRecord).filter(
                AssessmentRecord.student_username == username
            ).order_by(AssessmentRecord.created_at.desc()).first()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load results for {username}: {e}") from e
    
    def latest_result(self, db: Session, username: str) -> Optional[AssessmentResult]:
        record = self.latest_record(db, username)
        return to_result(record) if record is not None else None
    
    def results_for(self, db: Session, username: str, limit: Optional[int] = None) -> List[AssessmentResult]:
        """History, newest first"""
        try:
            query = db.query(AssessmentRecord).filter(
                AssessmentRecord.student_username == username
            ).order_by(AssessmentRecord.created_at.desc())
            if limit:
                query = query.limit(limit)
            return [to_result(r) for r in query.all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load results for {username}: {e}") from e


# Global instance
persistence = PersistenceAdapter()
