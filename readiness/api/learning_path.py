"""
Learning path and course catalogue API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from readiness.api.deps import (
    get_cache,
    get_learning_path_service,
    require_student,
    require_tpo,
)
from readiness.database import get_db
from readiness.models import Course
from readiness.schemas.assessment import Track
from readiness.schemas.learning_path import (
    CourseCreate,
    CourseOut,
    CourseToggle,
    CourseToggleResponse,
    LearningPathView,
    LearningPlan,
)
from readiness.services.learning_path_service import LearningPathService, skill_gaps_for
from readiness.services.persistence import persistence
from readiness.services.session_store import SessionContext
from readiness.utils.cache import CacheService

router = APIRouter(prefix="/api", tags=["learning-path"])
logger = logging.getLogger(__name__)


@router.get("/learning-path", response_model=LearningPathView)
async def get_learning_path(
    session: SessionContext = Depends(require_student),
    service: LearningPathService = Depends(get_learning_path_service),
    cache: CacheService = Depends(get_cache),
    db: Session = Depends(get_db),
):
    """
    Course recommendations for the newest assessment result

    - AI ranking is cached per result (1-hour TTL)
    - Falls back to keyword matching when the AI is unavailable
    - 404 until the student has taken an assessment
    """
    result = persistence.latest_result(db, session.username)
    if result is None:
        raise HTTPException(status_code=404, detail="Take an assessment to get a learning path")
    
    skill_gaps = skill_gaps_for(result)
    notices = []
    
    cached = cache.get_plan(session.username, result.id)
    if cached:
        plan = LearningPlan.model_validate(cached)
    else:
        courses = service.list_courses(db)
        plan, notice = await service.recommend(skill_gaps, result.track, courses)
        if notice is not None:
            notices.append(notice)
        if not plan.degraded:
            cache.store_plan(session.username, result.id, plan.model_dump(mode="json", by_alias=True))
    
    completed = service.completed_course_ids(db, session.username)
    
    return LearningPathView(
        result_id=result.id,
        track=result.track,
        level=result.level,
        skill_gaps=skill_gaps,
        recommendations=plan.recommendations,
        study_tips=plan.study_tips,
        completed_course_ids=completed,
        progress_percent=service.progress_percent(plan, completed),
        degraded=plan.degraded,
        notices=notices,
    )


@router.post("/learning-path/courses/{course_id}/toggle", response_model=CourseToggleResponse)
async def toggle_course(
    course_id: UUID,
    request: CourseToggle,
    session: SessionContext = Depends(require_student),
    service: LearningPathService = Depends(get_learning_path_service),
    db: Session = Depends(get_db),
):
    """Mark a recommended course completed, or undo it"""
    if db.query(Course).filter(Course.id == course_id).first() is None:
        raise HTTPException(status_code=404, detail="Course not found")
    
    completed = service.toggle_completed(db, session.username, course_id, request.skill_gap)
    return CourseToggleResponse(course_id=course_id, is_completed=completed)


@router.get("/courses", response_model=List[CourseOut])
async def list_courses(
    track: Optional[Track] = None,
    service: LearningPathService = Depends(get_learning_path_service),
    db: Session = Depends(get_db),
):
    return service.list_courses(db, track)


@router.post("/courses", response_model=CourseOut, status_code=201)
async def create_course(
    request: CourseCreate,
    session: SessionContext = Depends(require_tpo),
    cache: CacheService = Depends(get_cache),
    db: Session = Depends(get_db),
):
    """Add a course to the catalogue (TPO only)"""
    data = request.model_dump()
    data["url"] = str(request.url)
    data["track"] = request.track.value
    
    course = Course(**data)
    db.add(course)
    db.commit()
    db.refresh(course)
    
    # Rankings were computed against the old catalogue
    cache.invalidate()
    logger.info(f"Course added by {session.username}: {course.title}")
    return course
