"""
Pydantic schemas for TPO analytics endpoints
"""
from typing import Dict, List, Optional

from readiness.schemas.assessment import AssessmentResult, Level, Track
from readiness.schemas.common import WireModel


class GapStat(WireModel):
    """How many students share a gap"""
    gap: str
    count: int
    percentage: int


class TrackStats(WireModel):
    """Level distribution and top gaps for one track"""
    track: Track
    total: int
    level_counts: Dict[Level, int]
    level_percentages: Dict[Level, int]
    top_gaps: List[GapStat]


class Overview(WireModel):
    """Placement readiness across all students (newest result each)"""
    total_students: int
    total_assessments: int
    ready_percentage: int
    average_score: float
    degraded_results: int
    tracks: List[TrackStats]
    top_gaps: List[GapStat]


class StudentAnalytics(WireModel):
    """One student's assessment history"""
    student_username: str
    total_attempts: int
    latest_level: Optional[Level] = None
    latest_track: Optional[Track] = None
    best_score: float
    recurring_gaps: List[GapStat]
    history: List[AssessmentResult]
