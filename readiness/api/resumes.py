"""
Resume analysis API endpoints
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session
from typing import Optional
import logging

from readiness.api.deps import require_student
from readiness.config import settings
from readiness.database import get_db
from readiness.schemas.assessment import Track
from readiness.schemas.resume import ResumeAnalyzeRequest, ResumeRecord
from readiness.services.resume_service import resume_service
from readiness.services.session_store import SessionContext

router = APIRouter(prefix="/api/resumes", tags=["resumes"])
logger = logging.getLogger(__name__)

ALLOWED_RESUME_TYPES = {".txt", ".md"}


@router.post("/analyze", response_model=ResumeRecord, status_code=201)
async def analyze_resume(
    request: ResumeAnalyzeRequest,
    session: SessionContext = Depends(require_student),
    db: Session = Depends(get_db),
):
    """
    Score pasted resume text

    Keyword-based and deterministic; no AI call is made.
    """
    return resume_service.analyze(
        db, session.username, request.text, request.track, file_name=request.file_name
    )


@router.post("/upload", response_model=ResumeRecord, status_code=201)
async def upload_resume(
    file: UploadFile = File(...),
    track: Optional[Track] = Form(None),
    session: SessionContext = Depends(require_student),
    db: Session = Depends(get_db),
):
    """
    Upload a plain-text resume, store it, and score it

    - Accepts .txt and .md files
    - Max size from MAX_RESUME_BYTES
    """
    filename = file.filename or "resume.txt"
    if not any(filename.lower().endswith(ext) for ext in ALLOWED_RESUME_TYPES):
        raise HTTPException(status_code=400, detail="Only .txt and .md resumes are supported")
    
    content = await file.read()
    if len(content) > settings.MAX_RESUME_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Resume too large. Max size: {settings.MAX_RESUME_BYTES} bytes"
        )
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Resume must be UTF-8 text")
    if not text.strip():
        raise HTTPException(status_code=400, detail="Resume is empty")
    
    await resume_service.save_upload(content, filename)
    return resume_service.analyze(db, session.username, text, track, file_name=filename)


@router.get("/latest", response_model=ResumeRecord)
async def latest_resume(
    session: SessionContext = Depends(require_student),
    db: Session = Depends(get_db),
):
    record = resume_service.latest(db, session.username)
    if record is None:
        raise HTTPException(status_code=404, detail="No resume analyzed yet")
    return record
