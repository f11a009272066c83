"""
Level/gap derivation and AI skill prediction

Provisional level comes from fixed ratio thresholds on the verified score.
The AI prediction, when it succeeds, overrides that level and adds
confidence, prioritized gaps, recommendations and a readiness estimate.
When it fails, a deterministic fallback prediction is built instead.
"""
import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence

from readiness.errors import AIServiceError, ErrorKind, PredictionUnavailable
from readiness.schemas.assessment import (
    AIPrediction, GapType, Level, Priority, QuestionResponse, SkillGap, Track,
)
from readiness.schemas.common import Notice
from readiness.services.gemini_service import extract_json, gemini_service

logger = logging.getLogger(__name__)

# Ratio thresholds on correct/total. For a 5-question assessment:
# <=1 Beginner, 2-3 Intermediate, >=4 Ready.
READY_RATIO = Fraction(4, 5)
INTERMEDIATE_RATIO = Fraction(2, 5)

DIFFICULTY_WEIGHTS = {"Easy": 1, "Medium": 2, "Hard": 3}

READINESS_WEEKS = {Level.READY: 0, Level.INTERMEDIATE: 4, Level.BEGINNER: 8}

DEFAULT_CONFIDENCE = 75

_CONCEPTUAL_MARKERS = ("Evaluation", "Security", "Mechanism", "Theory", "Concept")


def _as_int(value: Any, default: int) -> int:
    """Numeric AI field as an int; missing or non-numeric values take the default"""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default


def _member(enum_cls, value: Any, default):
    if isinstance(value, str) and value in {m.value for m in enum_cls}:
        return value
    return default


def provisional_level(correct: int, total: int) -> Level:
    """Monotone in `correct` for a fixed `total`"""
    if total <= 0:
        return Level.BEGINNER
    ratio = Fraction(max(correct, 0), total)
    if ratio >= READY_RATIO:
        return Level.READY
    if ratio >= INTERMEDIATE_RATIO:
        return Level.INTERMEDIATE
    return Level.BEGINNER


def weighted_score(responses: Sequence[QuestionResponse]) -> float:
    """Difficulty-weighted percentage: Hard=3, Medium=2, Easy=1"""
    total_weight = 0
    weighted_correct = 0
    for response in responses:
        difficulty = getattr(response.difficulty, "value", response.difficulty)
        weight = DIFFICULTY_WEIGHTS.get(difficulty, 1)
        total_weight += weight
        if response.is_correct:
            weighted_correct += weight
    return (weighted_correct / total_weight * 100) if total_weight > 0 else 0.0


def fallback_prediction(level: Level, gaps: Sequence[str], track: Track) -> AIPrediction:
    """Deterministic stand-in used when the AI prediction is unavailable"""
    track_name = Track(track).value
    focus = gaps[0] if gaps else track_name
    return AIPrediction(
        level=level,
        confidence=DEFAULT_CONFIDENCE,
        skill_gaps=[
            SkillGap(
                skill=gap,
                gap_type=GapType.CONCEPTUAL if any(m in gap for m in _CONCEPTUAL_MARKERS)
                else GapType.PRACTICAL,
                priority=Priority.MEDIUM,
            )
            for gap in gaps
        ],
        recommendations=[
            f"Focus on mastering {focus} fundamentals",
            "Practice with real-world projects and coding challenges",
            "Review missed concepts and attempt mock assessments",
        ],
        estimated_readiness_weeks=READINESS_WEEKS[level],
    )


@dataclass
class PredictionOutcome:
    prediction: AIPrediction
    from_ai: bool
    weighted_score: float
    notice: Optional[Notice] = None
    error: Optional[AIServiceError] = None

    @property
    def level(self) -> Level:
        return self.prediction.level


def fallback_notice(error: AIServiceError) -> Notice:
    """Toast shown when standard scoring replaces the AI prediction"""
    if error.kind == ErrorKind.QUOTA_EXHAUSTED:
        return Notice(
            title="Credits Exhausted",
            message="AI credits exhausted. Standard scoring was used for your readiness level.",
            level="warning",
        )
    if error.kind == ErrorKind.RATE_LIMITED:
        return Notice(
            title="Rate Limit",
            message="AI service is busy. Standard scoring was used for your readiness level.",
            level="warning",
        )
    return Notice(
        title="Standard Scoring",
        message="AI analysis unavailable. Standard scoring was used for your readiness level.",
        level="info",
    )


class PredictionService:
    """Derives the readiness level and skill-gap profile"""
    
    def __init__(self, gateway=None):
        self.gateway = gateway or gemini_service
    
    async def predict(
        self,
        student_username: str,
        track: Track,
        correct_answers: int,
        total_questions: int,
        gaps: Sequence[str],
        question_responses: Sequence[QuestionResponse]
    ) -> PredictionOutcome:
        """
        AI prediction with fallback; never raises for AI failures
        """
        level = provisional_level(correct_answers, total_questions)
        score = weighted_score(question_responses)
        
        try:
            prediction = await self.predict_with_ai(
                student_username, track, correct_answers, total_questions,
                gaps, question_responses, provisional=level, weighted=score
            )
        except PredictionUnavailable as e:
            logger.warning(
                f"Skill prediction unavailable for {student_username} "
                f"({e.kind.value}: {e.message}); using fallback level {level.value}"
            )
            return PredictionOutcome(
                prediction=fallback_prediction(level, list(gaps), track),
                from_ai=False,
                weighted_score=score,
                notice=fallback_notice(e),
                error=e,
            )
        
        logger.info(
            f"AI prediction for {student_username}: {prediction.level.value} "
            f"(provisional {level.value}, confidence {prediction.confidence})"
        )
        return PredictionOutcome(prediction=prediction, from_ai=True, weighted_score=score)
    
    async def predict_with_ai(
        self,
        student_username: str,
        track: Track,
        correct_answers: int,
        total_questions: int,
        gaps: Sequence[str],
        question_responses: Sequence[QuestionResponse],
        provisional: Level,
        weighted: float
    ) -> AIPrediction:
        """
        Raises:
            PredictionUnavailable: gateway failure or unparseable payload
        """
        prompt = self._prompt(
            student_username, track, correct_answers, total_questions,
            gaps, question_responses, weighted
        )
        try:
            text = await self.gateway.complete(
                prompt,
                system_instruction=(
                    "You are an expert ML-based placement readiness classifier. "
                    "Always respond with valid JSON only, no markdown."
                ),
                temperature=0.3
            )
            data = extract_json(text, expect=dict)
        except AIServiceError as e:
            raise PredictionUnavailable.wrap(e) from e
        
        try:
            return self.sanitize(data, provisional, gaps)
        except (TypeError, ValueError) as e:
            raise PredictionUnavailable(
                ErrorKind.PARSE_ERROR, f"Malformed prediction payload: {str(e)}"
            ) from e
    
    @staticmethod
    def sanitize(data: Dict[str, Any], provisional: Level, gaps: Sequence[str]) -> AIPrediction:
        """Clamp and default whatever the model returned into a valid AIPrediction"""
        level = data.get("level")
        if not isinstance(level, str) or level not in {lv.value for lv in Level}:
            level = provisional.value
        
        confidence = _as_int(data.get("confidence"), DEFAULT_CONFIDENCE)
        confidence = min(100, max(0, confidence))
        
        weeks = max(0, _as_int(data.get("estimatedReadinessWeeks"), 0))
        
        raw_gaps = data.get("skillGaps")
        skill_gaps = []
        for item in raw_gaps if isinstance(raw_gaps, list) else []:
            if not isinstance(item, dict) or not item.get("skill"):
                continue
            gap_type = item.get("gapType")
            priority = item.get("priority")
            skill_gaps.append(SkillGap(
                skill=str(item["skill"]),
                gap_type=_member(GapType, gap_type, GapType.CONCEPTUAL),
                priority=_member(Priority, priority, Priority.MEDIUM),
            ))
        if not skill_gaps and gaps:
            skill_gaps = [SkillGap(skill=gap) for gap in gaps]
        
        raw_recommendations = data.get("recommendations")
        if isinstance(raw_recommendations, str):
            raw_recommendations = [raw_recommendations]
        elif not isinstance(raw_recommendations, list):
            raw_recommendations = []
        recommendations = [str(r) for r in raw_recommendations if r]
        
        return AIPrediction(
            level=level,
            confidence=confidence,
            skill_gaps=skill_gaps,
            recommendations=recommendations,
            estimated_readiness_weeks=weeks,
        )
    
    @staticmethod
    def _prompt(
        student_username: str,
        track: Track,
        correct_answers: int,
        total_questions: int,
        gaps: Sequence[str],
        question_responses: Sequence[QuestionResponse],
        weighted: float
    ) -> str:
        raw_percent = (correct_answers / total_questions * 100) if total_questions else 0.0
        breakdown = "\n".join(
            f"{i + 1}. Topic: {r.topic} | Difficulty: {r.difficulty.value} | "
            f"Result: {'Correct' if r.is_correct else 'Wrong'}"
            for i, r in enumerate(question_responses)
        )
        return f"""You are an expert placement readiness classifier for engineering students.

Analyze this student's assessment performance and predict their placement readiness level.

**Student Data:**
- Username: {student_username}
- Track: {Track(track).value}
- Raw Score: {correct_answers}/{total_questions} ({raw_percent:.1f}%)
- Weighted Score (difficulty-adjusted): {weighted:.1f}%

**Question-by-Question Breakdown:**
{breakdown}

**Identified Skill Gaps:**
{", ".join(gaps) if gaps else "None"}

**Classification Guidelines:**
- **Beginner (0-40% weighted)**: Needs fundamental training. Multiple core concept gaps.
- **Intermediate (41-70% weighted)**: Good foundation but needs targeted improvement.
- **Ready (71-100% weighted)**: Placement-ready with minor refinements needed.

**Your Task:**
1. Classify the student as Beginner, Intermediate, or Ready
2. Calculate a confidence score (0-100)
3. Categorize each skill gap as "Conceptual" (theory/knowledge) or "Practical" (application/coding)
4. Prioritize gaps as High/Medium/Low based on industry relevance
5. Provide 3 specific, actionable recommendations
6. Estimate weeks to reach "Ready" level (0 if already Ready)

Respond ONLY with valid JSON in this exact format:
{{
  "level": "Beginner" | "Intermediate" | "Ready",
  "confidence": number,
  "skillGaps": [
    {{ "skill": "string", "gapType": "Conceptual" | "Practical", "priority": "High" | "Medium" | "Low" }}
  ],
  "recommendations": ["string", "string", "string"],
  "estimatedReadinessWeeks": number
}}"""


# Global instance
prediction_service = PredictionService()
