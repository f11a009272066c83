"""
Analytics service for TPO placement-readiness tracking
"""
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from readiness.models import AssessmentRecord
from readiness.schemas.assessment import Level, Track
from readiness.services.persistence import persistence

logger = logging.getLogger(__name__)

TOP_GAPS = 3


def _percent(part: int, whole: int) -> int:
    return int(part / whole * 100 + 0.5) if whole else 0


class AnalyticsService:
    """Service for generating readiness analytics"""
    
    def latest_per_student(self, db: Session) -> List[AssessmentRecord]:
        """Newest result of every student who has taken an assessment"""
        records = db.query(AssessmentRecord).order_by(
            AssessmentRecord.created_at.desc()
        ).all()
        
        latest: Dict[str, AssessmentRecord] = {}
        for record in records:
            latest.setdefault(record.student_username, record)
        return list(latest.values())
    
    def get_overview(self, db: Session) -> Dict[str, Any]:
        """
        Readiness overview across all students
        
        Each student counts once, with their newest result.
        
        Returns:
            Dictionary with level distribution per track and top gaps
        """
        total_assessments = db.query(AssessmentRecord).count()
        latest = self.latest_per_student(db)
        total = len(latest)
        
        ready = sum(1 for r in latest if r.level == Level.READY.value)
        scores = [r.correct_answers / r.total_questions for r in latest if r.total_questions]
        average = sum(scores) / len(scores) * 100 if scores else 0.0
        
        tracks = [
            self._track_stats(track, [r for r in latest if r.track == track.value])
            for track in Track
        ]
        
        logger.info(f"Analytics overview: {total} students, {total_assessments} assessments")
        
        return {
            "total_students": total,
            "total_assessments": total_assessments,
            "ready_percentage": _percent(ready, total),
            "average_score": round(average, 2),
            "degraded_results": sum(1 for r in latest if r.degraded),
            "tracks": tracks,
            "top_gaps": self._top_gaps((r.gaps or [] for r in latest), total),
        }
    
    def _track_stats(self, track: Track, records: List[AssessmentRecord]) -> Dict[str, Any]:
        total = len(records)
        counts = Counter(r.level for r in records)
        level_counts = {level: counts.get(level.value, 0) for level in Level}
        
        return {
            "track": track,
            "total": total,
            "level_counts": level_counts,
            "level_percentages": {level: _percent(n, total) for level, n in level_counts.items()},
            "top_gaps": self._top_gaps((r.gaps or [] for r in records), total),
        }
    
    def _top_gaps(self, gap_lists: Iterable[List[str]], total: int, limit: int = TOP_GAPS) -> List[Dict[str, Any]]:
        """Most common gaps; percentage is of `total` students"""
        counts: Counter = Counter()
        for gaps in gap_lists:
            counts.update(list(dict.fromkeys(gaps)))
        
        # Ties keep first-seen order
        ranked = sorted(counts.items(), key=lambda item: -item[1])
        return [
            {"gap": gap, "count": count, "percentage": _percent(count, total)}
            for gap, count in ranked[:limit]
        ]
    
    def get_student_analytics(self, db: Session, username: str) -> Optional[Dict[str, Any]]:
        """
        Assessment history for one student
        
        Returns:
            None if the student has no results
        """
        history = persistence.results_for(db, username)
        if not history:
            return None
        
        latest = history[0]
        best = max(r.correct_answers / r.total_questions for r in history if r.total_questions) \
            if any(r.total_questions for r in history) else 0.0
        
        # Gaps seen in more than one attempt
        recurring = [
            gap for gap in self._top_gaps((r.gaps for r in history), len(history), limit=len(history) * 10)
            if gap["count"] > 1
        ]
        
        return {
            "student_username": username,
            "total_attempts": len(history),
            "latest_level": latest.level,
            "latest_track": latest.track,
            "best_score": round(best * 100, 2),
            "recurring_gaps": recurring,
            "history": history,
        }


# Global instance
analytics_service = AnalyticsService()
