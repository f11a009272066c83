"""
Pydantic schemas for courses and learning-path recommendations
"""
from pydantic import ConfigDict, Field, HttpUrl
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from readiness.schemas.assessment import Level, SkillGap, Track
from readiness.schemas.common import Notice, WireModel


class CourseBase(WireModel):
    title: str = Field(..., min_length=1, max_length=255)
    platform: str = Field(..., min_length=1, max_length=100)
    url: str
    skill_covered: str = Field(..., min_length=1, max_length=255)
    track: str
    difficulty_level: str = "Beginner"
    is_free: bool = True
    rating: Optional[float] = Field(None, ge=0, le=5)
    duration_hours: Optional[int] = Field(None, ge=0)
    instructor: Optional[str] = None
    description: Optional[str] = None


class CourseCreate(CourseBase):
    """Request schema for adding a course to the catalogue"""
    url: HttpUrl
    track: Track


class CourseOut(CourseBase):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class Recommendation(WireModel):
    course: CourseOut
    addresses_gap: str
    reason: str
    priority: int


class LearningPlan(WireModel):
    """Ranked courses plus study tips for a set of skill gaps"""
    recommendations: List[Recommendation] = []
    study_tips: List[str] = []
    degraded: bool = False


class LearningPathRequest(WireModel):
    skill_gaps: List[SkillGap]
    track: Track
    courses: List[CourseOut]


class LearningPathResponse(WireModel):
    success: bool
    recommendations: List[Recommendation] = []
    study_tips: List[str] = []
    error: Optional[str] = None


class LearningPathView(WireModel):
    """Learning path page for the logged-in student"""
    result_id: Optional[UUID] = None
    track: Track
    level: Level
    skill_gaps: List[SkillGap] = []
    recommendations: List[Recommendation] = []
    study_tips: List[str] = []
    completed_course_ids: List[UUID] = []
    progress_percent: int = 0
    degraded: bool = False
    notices: List[Notice] = []


class CourseToggle(WireModel):
    skill_gap: str = Field(..., min_length=1)


class CourseToggleResponse(WireModel):
    course_id: UUID
    is_completed: bool
