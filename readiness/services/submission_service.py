"""
Submission orchestration

verify -> derive level and gaps -> ensure student -> predict -> persist.
Each step is awaited before the next starts. Collaborator failures are
logged and turned into notices; the caller always gets a result to show.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from readiness.errors import PersistenceFailure
from readiness.schemas.assessment import Answer, AssessmentResult, Question, Track
from readiness.schemas.common import Notice
from readiness.services.persistence import persistence as default_persistence
from readiness.services.prediction_service import (
    prediction_service as default_prediction_service,
    provisional_level,
)
from readiness.services.verification_service import (
    VerificationOutcome,
    verification_service as default_verification_service,
)

logger = logging.getLogger(__name__)

DEGRADED_NOTICE = Notice(
    title="Basic Grading",
    message="AI verification was unavailable, so answers were checked by exact match.",
    level="warning",
)

NOT_SAVED_NOTICE = Notice(
    title="Not Saved",
    message="Assessment completed but not saved. Your results are shown below.",
    level="warning",
)


@dataclass
class SubmissionOutcome:
    result: AssessmentResult
    verification: VerificationOutcome
    degraded: bool = False
    saved: bool = False
    student_created: bool = False
    notices: List[Notice] = field(default_factory=list)


class SubmissionService:
    """Runs the full submission sequence for one completed attempt"""
    
    def __init__(self, verifier=None, predictor=None, store=None):
        self.verifier = verifier or default_verification_service
        self.predictor = predictor or default_prediction_service
        self.store = store or default_persistence
    
    async def submit(
        self,
        db: Session,
        username: str,
        track: Track,
        questions: Sequence[Question],
        answers: Sequence[Answer]
    ) -> SubmissionOutcome:
        """
        Grade, classify and store one attempt
        
        Args:
            db: Database session
            username: Submitting student
            track: Assessment track
            questions: Questions in display order
            answers: One recorded answer per question, same order
            
        Returns:
            SubmissionOutcome; `saved` is False when persistence failed
        """
        track = Track(track)
        notices: List[Notice] = []
        
        # 1. Verify
        verification = await self.verifier.verify(
            questions, [a.raw_answer for a in answers], track
        )
        if verification.degraded:
            notices.append(DEGRADED_NOTICE)
        
        total = len(questions)
        correct = verification.correct_count
        responses = verification.question_responses()
        
        # 2. Provisional level
        level = provisional_level(correct, total)
        
        # 3. Student row
        student = None
        student_created = False
        try:
            student, student_created = self.store.ensure_student(db, username)
        except PersistenceFailure as e:
            logger.error(f"Student lookup failed for {username}: {e}")
        
        # 4. Prediction (its level overrides the provisional one)
        prediction = await self.predictor.predict(
            username, track, correct, total, verification.gaps, responses
        )
        if prediction.notice is not None:
            notices.append(prediction.notice)
        
        result = AssessmentResult(
            student_username=username,
            track=track,
            correct_answers=correct,
            total_questions=total,
            level=prediction.level,
            gaps=verification.gaps,
            question_responses=responses,
            ai_prediction=prediction.prediction,
            confidence_score=prediction.prediction.confidence,
            degraded=verification.degraded,
        )
        logger.info(
            f"Assessment graded for {username}: {correct}/{total}, "
            f"provisional {level.value}, final {result.level.value}"
        )
        
        # 5. Persist
        saved = False
        if student is not None:
            try:
                result = self.store.insert_result(db, result, student)
                saved = True
            except PersistenceFailure as e:
                logger.error(f"Assessment result for {username} not saved: {e}")
        if not saved:
            notices.append(NOT_SAVED_NOTICE)
        
        return SubmissionOutcome(
            result=result,
            verification=verification,
            degraded=verification.degraded,
            saved=saved,
            student_created=student_created,
            notices=notices,
        )


# Global instance
submission_service = SubmissionService()
