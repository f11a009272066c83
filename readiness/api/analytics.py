"""
TPO analytics API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from readiness.api.deps import require_tpo
from readiness.database import get_db
from readiness.schemas.analytics import Overview, StudentAnalytics
from readiness.services.analytics_service import analytics_service
from readiness.services.session_store import SessionContext

router = APIRouter(prefix="/api/analytics", tags=["analytics"])
logger = logging.getLogger(__name__)


@router.get("/overview", response_model=Overview)
async def get_overview(
    session: SessionContext = Depends(require_tpo),
    db: Session = Depends(get_db)
):
    """
    Readiness overview for the TPO dashboard
    
    Returns:
    - Student and assessment totals
    - Level counts and percentages per track
    - Top 3 skill gaps per track and overall
    - Ready percentage, average score, degraded-grading count
    """
    logger.info(f"Fetching analytics overview for {session.username}")
    return Overview(**analytics_service.get_overview(db))


@router.get("/students/{username}", response_model=StudentAnalytics)
async def get_student_analytics(
    username: str,
    session: SessionContext = Depends(require_tpo),
    db: Session = Depends(get_db)
):
    """
    Assessment history of one student
    
    Returns:
    - Every result, newest first
    - Latest level and track, best score
    - Gaps that recur across attempts
    """
    analytics = analytics_service.get_student_analytics(db, username)
    if analytics is None:
        raise HTTPException(status_code=404, detail="No assessments for this student")
    return StudentAnalytics(**analytics)
