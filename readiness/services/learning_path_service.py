"""
Learning path recommendations

The AI picks and orders courses from the catalogue for a student's skill
gaps. If it fails, courses are matched to gaps by keyword instead.
"""
import logging
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from readiness.config import settings
from readiness.database import utc_now
from readiness.errors import AIServiceError, PersistenceFailure
from readiness.models import Course, LearningPath
from readiness.schemas.assessment import AssessmentResult, GapType, Priority, SkillGap, Track
from readiness.schemas.common import Notice
from readiness.schemas.learning_path import CourseOut, LearningPlan, Recommendation
from readiness.services.gemini_service import extract_json, gemini_service

logger = logging.getLogger(__name__)

KEYWORD_FALLBACK_NOTICE = Notice(
    title="Note",
    message="Using keyword-based recommendations. AI service unavailable.",
    level="info",
)


def skill_gaps_for(result: AssessmentResult) -> List[SkillGap]:
    """Gaps from the AI prediction, else the raw gap topics marked Conceptual/High"""
    if result.ai_prediction and result.ai_prediction.skill_gaps:
        return list(result.ai_prediction.skill_gaps)
    return [
        SkillGap(skill=gap, gap_type=GapType.CONCEPTUAL, priority=Priority.HIGH)
        for gap in result.gaps
    ]


def keyword_matches(skill_gaps: Sequence[SkillGap], courses: Sequence[CourseOut], limit: int) -> List[Recommendation]:
    """Courses whose skill or title mentions a gap, in catalogue order"""
    gaps = [g.skill for g in skill_gaps]
    recommendations = []
    for course in courses:
        skill = (course.skill_covered or "").lower()
        title = (course.title or "").lower()
        matched = next((g for g in gaps if g.lower() in skill or g.lower() in title), None)
        if matched is None:
            continue
        recommendations.append(Recommendation(
            course=course,
            addresses_gap=matched,
            reason=f"Covers {course.skill_covered} which matches your identified gaps.",
            priority=len(recommendations) + 1,
        ))
        if len(recommendations) >= limit:
            break
    return recommendations


class LearningPathService:
    """Ranks catalogue courses against skill gaps"""
    
    def __init__(self, gateway=None, limit: Optional[int] = None):
        self.gateway = gateway or gemini_service
        self.limit = limit or settings.MAX_RECOMMENDED_COURSES
    
    async def recommend(
        self,
        skill_gaps: Sequence[SkillGap],
        track: Track,
        courses: Sequence[CourseOut]
    ) -> Tuple[LearningPlan, Optional[Notice]]:
        """AI ranking with keyword fallback; never raises for AI failures"""
        try:
            plan = await self.rank_with_ai(skill_gaps, track, courses)
        except AIServiceError as e:
            logger.warning(f"AI course ranking unavailable ({e.kind.value}): {e.message}; using keyword match")
            plan = LearningPlan(
                recommendations=keyword_matches(skill_gaps, courses, self.limit),
                degraded=True,
            )
            return plan, KEYWORD_FALLBACK_NOTICE
        return plan, None
    
    async def rank_with_ai(
        self,
        skill_gaps: Sequence[SkillGap],
        track: Track,
        courses: Sequence[CourseOut]
    ) -> LearningPlan:
        """
        Raises:
            AIServiceError: gateway failure or unparseable payload
        """
        if not courses:
            return LearningPlan()
        
        text = await self.gateway.complete(
            self._prompt(skill_gaps, track, courses),
            system_instruction="You are a helpful career advisor. Always respond with valid JSON only, no markdown.",
            temperature=0.4
        )
        data = extract_json(text, expect=dict)
        
        picked: List[Recommendation] = []
        for item in data.get("recommendations") or []:
            if not isinstance(item, dict):
                continue
            index = self._int_or_none(item.get("courseIndex"))
            if index is None or not 0 <= index < len(courses):
                continue
            picked.append(Recommendation(
                course=courses[index],
                addresses_gap=str(item.get("addressesGap") or "General"),
                reason=str(item.get("reason") or ""),
                priority=self._int_or_none(item.get("priority")) or len(picked) + 1,
            ))
        
        picked.sort(key=lambda r: r.priority)
        tips = [str(t) for t in (data.get("studyTips") or []) if t]
        logger.info(f"AI selected {len(picked)} of {len(courses)} courses")
        return LearningPlan(recommendations=picked[:self.limit], study_tips=tips)
    
    @staticmethod
    def _int_or_none(value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    
    def _prompt(self, skill_gaps: Sequence[SkillGap], track: Track, courses: Sequence[CourseOut]) -> str:
        course_summary = "\n".join(
            f'[{i}] "{c.title}" | Platform: {c.platform} | Skill: {c.skill_covered} | '
            f"Track: {c.track} | Difficulty: {c.difficulty_level} | Free: {c.is_free} | "
            f"Rating: {c.rating if c.rating is not None else 'N/A'} | "
            f"Hours: {c.duration_hours if c.duration_hours is not None else 'N/A'}"
            for i, c in enumerate(courses)
        )
        gaps_summary = "\n".join(
            f"- {g.skill} (Gap: {g.gap_type.value}, Priority: {g.priority.value})" for g in skill_gaps
        )
        return f"""You are a career counselor AI. A student just completed an assessment in "{Track(track).value}" and has these skill gaps:

{gaps_summary or "- None identified"}

Here are all available courses:
{course_summary}

Select the BEST courses (up to {self.limit}) that address the student's skill gaps. For each selected course, provide:
1. The course index number from the list above
2. Which skill gap it addresses
3. A brief reason why this course helps (1 sentence)
4. Priority order (1 = most important)

Also suggest 2-3 general study tips for their weak areas.

Respond ONLY with valid JSON:
{{
  "recommendations": [
    {{
      "courseIndex": 0,
      "addressesGap": "skill name",
      "reason": "why this course helps",
      "priority": 1
    }}
  ],
  "studyTips": ["tip1", "tip2", "tip3"]
}}"""
    
    # -- catalogue and progress ----------------------------------------------
    
    def list_courses(self, db: Session, track: Optional[Track] = None) -> List[CourseOut]:
        try:
            query = db.query(Course)
            if track is not None:
                query = query.filter(Course.track == Track(track).value)
            return [CourseOut.model_validate(c) for c in query.order_by(Course.created_at).all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load courses: {e}") from e
    
    def completed_course_ids(self, db: Session, username: str) -> List[UUID]:
        rows = db.query(LearningPath.course_id).filter(
            LearningPath.student_username == username,
            LearningPath.is_completed.is_(True),
            LearningPath.course_id.isnot(None)
        ).all()
        return [row.course_id for row in rows]
    
    def toggle_completed(self, db: Session, username: str, course_id: UUID, skill_gap: str) -> bool:
        """
        Flip a course between completed and not completed
        
        Returns:
            The new completion state
        """
        existing = db.query(LearningPath).filter(
            LearningPath.student_username == username,
            LearningPath.course_id == course_id
        ).all()
        try:
            if existing:
                for row in existing:
                    db.delete(row)
                db.commit()
                return False
            
            db.add(LearningPath(
                student_username=username,
                course_id=course_id,
                skill_gap=skill_gap,
                is_completed=True,
                completed_at=utc_now(),
            ))
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not update learning path: {e}") from e
    
    @staticmethod
    def progress_percent(plan: LearningPlan, completed: Sequence[UUID]) -> int:
        if not plan.recommendations:
            return 0
        done = set(completed)
        hits = sum(1 for r in plan.recommendations if r.course.id in done)
        return round(hits / len(plan.recommendations) * 100)


# Global instance
learning_path_service = LearningPathService()
