"""
Assessment attempt and result API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from readiness.api.deps import (
    get_attempt_registry,
    get_question_service,
    get_submission_service,
    require_student,
)
from readiness.config import settings
from readiness.database import get_db
from readiness.errors import ErrorKind, GenerationError
from readiness.schemas.assessment import (
    AnswerSubmit,
    AssessmentResult,
    AttemptCreate,
    AttemptView,
    GradedQuestion,
    QuestionView,
    TrackChange,
)
from readiness.services import attempt_machine as machine
from readiness.services.attempt_registry import Attempt, AttemptRegistry
from readiness.services.persistence import persistence
from readiness.services.question_service import QuestionService
from readiness.services.session_store import SessionContext
from readiness.services.submission_service import SubmissionService

router = APIRouter(prefix="/api/assessments", tags=["assessments"])
logger = logging.getLogger(__name__)


def attempt_view(attempt: Attempt) -> AttemptView:
    """Snapshot of an attempt for the client; never includes the answer key before results"""
    state = attempt.state
    view = AttemptView(attempt_id=attempt.id, state=state.name, track=state.track)
    
    if isinstance(state, machine.Ready):
        view.index = state.index
        view.total_questions = len(state.questions)
        view.question = QuestionView.from_question(state.question)
        view.answered = len(state.answers)
    
    elif isinstance(state, machine.Submitting):
        view.total_questions = len(state.questions)
        view.answered = len(state.answers)
    
    elif isinstance(state, machine.Results):
        outcome = state.outcome
        view.total_questions = len(state.questions)
        view.answered = len(state.answers)
        view.result = outcome.result
        view.degraded = outcome.degraded
        view.saved = outcome.saved
        view.notices = outcome.notices
        view.graded = [
            GradedQuestion(
                id=question.id,
                question=question.prompt,
                topic=question.topic,
                difficulty=question.difficulty,
                your_answer=answer.raw_answer,
                is_correct=verified.is_correct,
                correct_answer=verified.canonical_correct_answer,
                explanation=verified.explanation,
            )
            for question, answer, verified in zip(
                outcome.verification.questions, state.answers, outcome.verification.results
            )
        ]
    
    elif isinstance(state, machine.Failed):
        error = state.error
        view.error = error.to_detail() if hasattr(error, "to_detail") else {
            "error": "submission_failed", "message": str(error)
        }
    
    return view


def _get_attempt(attempts: AttemptRegistry, attempt_id: UUID, session: SessionContext) -> Attempt:
    attempt = attempts.get(attempt_id, session.username)
    if attempt is None:
        raise HTTPException(status_code=404, detail="Attempt not found")
    return attempt


async def _load_questions(attempt: Attempt, questions: QuestionService) -> None:
    """Loading -> Ready, or Loading -> Failed plus an HTTP error carrying the attempt id"""
    try:
        generated = await questions.generate(attempt.state.track, attempt.num_questions)
    except Exception as e:
        if isinstance(e, GenerationError):
            error = e
        else:
            logger.error(f"Attempt {attempt.id}: unexpected generation error: {str(e)}", exc_info=True)
            error = GenerationError(ErrorKind.UNAVAILABLE, "Question generation failed")
        attempt.state = machine.reduce(attempt.state, machine.GenerationFailed(error))
        logger.warning(f"Attempt {attempt.id}: generation failed ({error.kind.value})")
        detail = error.to_detail()
        detail["attempt_id"] = str(attempt.id)
        raise HTTPException(status_code=error.status_code, detail=detail) from e
    
    attempt.state = machine.reduce(attempt.state, machine.QuestionsLoaded(tuple(generated)))


@router.post("/attempts", response_model=AttemptView, status_code=201)
async def start_attempt(
    request: AttemptCreate,
    session: SessionContext = Depends(require_student),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
    questions: QuestionService = Depends(get_question_service),
):
    """
    Start a new attempt for a track

    - Discards any previous attempt of this student
    - Generates fresh questions (different every time)
    - On generation failure the error carries `attempt_id` for /retry
    """
    num_questions = min(request.num_questions or settings.DEFAULT_NUM_QUESTIONS, settings.MAX_NUM_QUESTIONS)
    attempts.discard_owner(session.username)
    attempt = attempts.create(session.username, request.track, num_questions)
    
    async with attempts.hold(attempt):
        await _load_questions(attempt, questions)
    
    return attempt_view(attempt)


@router.get("/attempts/{attempt_id}", response_model=AttemptView)
async def get_attempt(
    attempt_id: UUID,
    session: SessionContext = Depends(require_student),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
):
    return attempt_view(_get_attempt(attempts, attempt_id, session))


@router.post("/attempts/{attempt_id}/retry", response_model=AttemptView)
async def retry_attempt(
    attempt_id: UUID,
    session: SessionContext = Depends(require_student),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
    questions: QuestionService = Depends(get_question_service),
):
    """Re-run generation from scratch after a failure"""
    attempt = _get_attempt(attempts, attempt_id, session)
    async with attempts.hold(attempt):
        attempt.state = machine.reduce(attempt.state, machine.RetryRequested())
        await _load_questions(attempt, questions)
    return attempt_view(attempt)


@router.post("/attempts/{attempt_id}/track", response_model=AttemptView)
async def change_track(
    attempt_id: UUID,
    request: TrackChange,
    session: SessionContext = Depends(require_student),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
    questions: QuestionService = Depends(get_question_service),
):
    """Reset the attempt to a new track; recorded answers are dropped"""
    attempt = _get_attempt(attempts, attempt_id, session)
    async with attempts.hold(attempt):
        attempt.state = machine.reduce(attempt.state, machine.TrackChanged(request.track))
        await _load_questions(attempt, questions)
    return attempt_view(attempt)


@router.post("/attempts/{attempt_id}/answers", response_model=AttemptView)
async def submit_answer(
    attempt_id: UUID,
    request: AnswerSubmit,
    session: SessionContext = Depends(require_student),
    attempts: AttemptRegistry = Depends(get_attempt_registry),
    submissions: SubmissionService = Depends(get_submission_service),
    db: Session = Depends(get_db),
):
    """
    Record the answer to the current question

    Answering the last question grades and stores the attempt; the response
    is then the results view.
    """
    attempt = _get_attempt(attempts, attempt_id, session)
    
    async with attempts.hold(attempt):
        state = attempt.state
        if isinstance(state, machine.Ready) and not machine.can_advance(state.question, request.answer):
            raise HTTPException(
                status_code=422,
                detail={
                    "error": "answer_required",
                    "message": "Select an option or enter an answer before continuing",
                },
            )
        
        attempt.state = machine.reduce(state, machine.AnswerProvided(request.answer))
        
        if isinstance(attempt.state, machine.Submitting):
            submitting = attempt.state
            try:
                outcome = await submissions.submit(
                    db, session.username, submitting.track,
                    submitting.questions, submitting.answers
                )
            except Exception as e:
                logger.error(f"Attempt {attempt.id}: submission failed: {str(e)}", exc_info=True)
                attempt.state = machine.reduce(submitting, machine.SubmissionFailed(e))
            else:
                attempt.state = machine.reduce(submitting, machine.SubmissionSettled(outcome))
    
    return attempt_view(attempt)


@router.get("/results/latest", response_model=AssessmentResult)
async def latest_result(
    session: SessionContext = Depends(require_student),
    db: Session = Depends(get_db),
):
    """Newest stored result of the logged-in student"""
    result = persistence.latest_result(db, session.username)
    if result is None:
        raise HTTPException(status_code=404, detail="No assessment taken yet")
    return result


@router.get("/results", response_model=List[AssessmentResult])
async def result_history(
    limit: int = 20,
    session: SessionContext = Depends(require_student),
    db: Session = Depends(get_db),
):
    """Result history, newest first"""
    return persistence.results_for(db, session.username, limit=limit)
