"""
AI function endpoints

Thin JSON proxies over the AI collaborators, one per operation. Unlike the
assessment API they do not fall back: classified failures are returned to
the caller (429 and 402 as-is, anything else as 500).
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
import logging

from readiness.api.deps import (
    get_chat_service,
    get_learning_path_service,
    get_prediction_service,
    get_profile_service,
    get_question_service,
    get_verification_service,
)
from readiness.errors import AIServiceError, ErrorKind
from readiness.schemas.assessment import (
    GenerateRequest,
    GenerateResponse,
    PredictRequest,
    PredictResponse,
    VerifiedItem,
    VerifyRequest,
    VerifyResponse,
)
from readiness.schemas.learning_path import LearningPathRequest, LearningPathResponse
from readiness.schemas.resume import ChatRequest, LinkedInRequest, LinkedInResponse
from readiness.services.chat_service import ChatService
from readiness.services.learning_path_service import LearningPathService
from readiness.services.prediction_service import PredictionService, provisional_level, weighted_score
from readiness.services.profile_service import ProfileService, ProfileTooShort
from readiness.services.question_service import QuestionService
from readiness.services.verification_service import VerificationService, derive_gaps
from readiness.utils.sse import delta_event, done_event

router = APIRouter(prefix="/functions", tags=["functions"])
logger = logging.getLogger(__name__)

_PASSTHROUGH = {ErrorKind.RATE_LIMITED, ErrorKind.QUOTA_EXHAUSTED}


def failure(error: Exception, status_code: int = 500) -> JSONResponse:
    """`{success: false, error}` with 429/402 passed through"""
    if isinstance(error, AIServiceError):
        message = error.message
        if error.kind in _PASSTHROUGH:
            status_code = error.status_code
    else:
        message = str(error)
    content = {"success": False, "error": message}
    headers = None
    if isinstance(error, AIServiceError) and error.retry_after:
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@router.post("/generate-assessment", response_model=GenerateResponse)
async def generate_assessment(
    request: GenerateRequest,
    questions: QuestionService = Depends(get_question_service),
):
    """Fresh questions for a track"""
    try:
        generated = await questions.generate(request.track, request.num_questions)
    except AIServiceError as e:
        logger.error(f"generate-assessment failed: {e.kind.value}: {e.message}")
        return failure(e)
    return GenerateResponse(success=True, questions=generated)


@router.post("/verify-assessment", response_model=VerifyResponse)
async def verify_assessment(
    request: VerifyRequest,
    verifier: VerificationService = Depends(get_verification_service),
):
    """Batch-grade answers; the verifier may correct the answer key"""
    if len(request.user_answers) != len(request.questions):
        return failure(ValueError("userAnswers must have one entry per question"), status_code=400)
    
    try:
        results = await verifier.verify_with_ai(request.questions, request.user_answers, request.track)
    except AIServiceError as e:
        logger.error(f"verify-assessment failed: {e.kind.value}: {e.message}")
        return failure(e)
    
    return VerifyResponse(
        success=True,
        results=[
            VerifiedItem(
                index=i,
                is_correct=r.is_correct,
                correct_answer=r.canonical_correct_answer,
                explanation=r.explanation,
                topic=r.topic,
            )
            for i, r in enumerate(results)
        ],
        correct_count=sum(1 for r in results if r.is_correct),
        total_questions=len(results),
        gaps=derive_gaps(request.questions, results),
    )


@router.post("/skill-prediction", response_model=PredictResponse)
async def skill_prediction(
    request: PredictRequest,
    predictor: PredictionService = Depends(get_prediction_service),
):
    """AI readiness level, gap profile and recommendations"""
    weighted = weighted_score(request.question_responses)
    try:
        prediction = await predictor.predict_with_ai(
            request.student_username,
            request.track,
            request.correct_answers,
            request.total_questions,
            request.gaps,
            request.question_responses,
            provisional=provisional_level(request.correct_answers, request.total_questions),
            weighted=weighted,
        )
    except AIServiceError as e:
        logger.error(f"skill-prediction failed: {e.kind.value}: {e.message}")
        return failure(e)
    
    return PredictResponse(
        success=True,
        prediction=prediction,
        metadata={
            "rawScore": round(request.correct_answers / request.total_questions * 100, 2),
            "weightedScore": round(weighted, 2),
            "track": request.track.value,
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
        },
    )


@router.post("/generate-learning-path", response_model=LearningPathResponse)
async def generate_learning_path(
    request: LearningPathRequest,
    service: LearningPathService = Depends(get_learning_path_service),
):
    """Rank the given courses against the given skill gaps"""
    try:
        plan = await service.rank_with_ai(request.skill_gaps, request.track, request.courses)
    except AIServiceError as e:
        logger.error(f"generate-learning-path failed: {e.kind.value}: {e.message}")
        return failure(e)
    return LearningPathResponse(
        success=True, recommendations=plan.recommendations, study_tips=plan.study_tips
    )


@router.post("/linkedin-analyze", response_model=LinkedInResponse)
async def linkedin_analyze(
    request: LinkedInRequest,
    profiles: ProfileService = Depends(get_profile_service),
):
    """Score pasted LinkedIn profile text"""
    try:
        analysis = await profiles.analyze_linkedin(request.profile_text, request.track)
    except ProfileTooShort as e:
        return failure(e, status_code=400)
    except AIServiceError as e:
        logger.error(f"linkedin-analyze failed: {e.kind.value}: {e.message}")
        return failure(e)
    return LinkedInResponse(success=True, analysis=analysis)


@router.post("/resume-chat")
async def resume_chat(
    request: ChatRequest,
    chat: ChatService = Depends(get_chat_service),
):
    """
    Career chat reply as a Server-Sent Events stream

    Each event carries `{"choices": [{"delta": {"content": ...}}]}`; the
    stream ends with `data: [DONE]`. Errors before the first delta are
    returned as JSON with a status code instead.
    """
    deltas = chat.stream_reply(request.messages, request.resume_analysis, request.username)
    try:
        first = await anext(deltas)
    except StopAsyncIteration:
        first = None
    except AIServiceError as e:
        logger.error(f"resume-chat failed: {e.kind.value}: {e.message}")
        return failure(e)
    
    async def event_stream():
        try:
            if first is not None:
                yield delta_event(first)
                async for delta in deltas:
                    yield delta_event(delta)
        except AIServiceError as e:
            logger.error(f"resume-chat stream interrupted: {e.kind.value}: {e.message}")
        yield done_event()
    
    return StreamingResponse(event_stream(), media_type="text/event-stream")
