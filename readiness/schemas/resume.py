"""
Pydantic schemas for resume and LinkedIn profile analysis
"""
from pydantic import Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from readiness.schemas.assessment import Track
from readiness.schemas.common import WireModel


class ResumeAnalysis(WireModel):
    """Keyword-based resume score breakdown (all scores 0-100)"""
    file_name: str = ""
    skill_match_score: int
    project_quality_score: int
    experience_score: int
    resume_structure_score: int
    action_verbs_score: int
    consistency_score: int
    overall_score: int
    matched_skills: List[str] = []
    missing_skills: List[str] = []
    recommendations: List[str] = []


class ResumeAnalyzeRequest(WireModel):
    file_name: str = Field("resume.txt", max_length=255)
    text: str = Field(..., min_length=1)
    track: Optional[Track] = None


class ResumeRecord(WireModel):
    id: UUID
    student_username: str
    file_name: Optional[str] = None
    overall_score: Optional[int] = None
    analysis: ResumeAnalysis
    created_at: datetime


class LinkedInRequest(WireModel):
    linkedin_url: Optional[str] = None
    profile_text: str = ""
    track: Optional[Track] = None


class LinkedInAnalysis(WireModel):
    overall_score: int = Field(0, ge=0, le=100)
    headline: Optional[str] = None
    name: Optional[str] = None
    skill_match_score: int = Field(0, ge=0, le=100)
    project_quality_score: int = Field(0, ge=0, le=100)
    experience_score: int = Field(0, ge=0, le=100)
    profile_completeness_score: int = Field(0, ge=0, le=100)
    network_strength_score: int = Field(0, ge=0, le=100)
    content_quality_score: int = Field(0, ge=0, le=100)
    matched_skills: List[str] = []
    missing_skills: List[str] = []
    strengths: List[str] = []
    improvements: List[str] = []
    summary: str = ""


class LinkedInResponse(WireModel):
    success: bool
    analysis: Optional[LinkedInAnalysis] = None
    error: Optional[str] = None


class ChatMessage(WireModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class ChatRequest(WireModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    resume_analysis: Optional[ResumeAnalysis] = None
    username: Optional[str] = None
