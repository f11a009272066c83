"""
Pydantic schemas for the assessment lifecycle
"""
from enum import Enum
from pydantic import Field, field_validator
from typing import List, Optional, Union
from uuid import UUID
from datetime import datetime

from readiness.schemas.common import WireModel, Notice


class Track(str, Enum):
    PROGRAMMING_DSA = "Programming & DSA"
    DATA_SCIENCE_ML = "Data Science & ML"
    DATABASE_SQL = "Database Management & SQL"
    BACKEND_WEB = "Backend / Web Dev"


class QuestionType(str, Enum):
    MCQ = "mcq"
    SHORT_ANSWER = "short_answer"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class Level(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    READY = "Ready"


class GapType(str, Enum):
    CONCEPTUAL = "Conceptual"
    PRACTICAL = "Practical"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


RawAnswer = Union[int, str]


class Question(WireModel):
    """One generated question; lives for a single attempt"""
    id: str
    type: QuestionType
    prompt: str = Field(alias="question")
    options: Optional[List[str]] = None  # exactly 4 for MCQ
    correct_answer: RawAnswer  # option index for MCQ, text otherwise
    topic: str
    explanation: str = "No explanation provided."
    difficulty: Difficulty = Difficulty.MEDIUM


class Answer(WireModel):
    """A recorded answer; is_correct stays None until verification"""
    question_id: str
    raw_answer: RawAnswer
    topic: str
    difficulty: Difficulty
    is_correct: Optional[bool] = None


class VerifiedAnswer(WireModel):
    """Grading of one answer, by the AI verifier or the local comparator"""
    is_correct: bool
    canonical_correct_answer: RawAnswer
    explanation: str
    topic: str


class QuestionResponse(WireModel):
    question_id: str
    topic: str
    is_correct: bool
    difficulty: Difficulty


class SkillGap(WireModel):
    skill: str
    gap_type: GapType = GapType.CONCEPTUAL
    priority: Priority = Priority.MEDIUM


class AIPrediction(WireModel):
    level: Level
    confidence: int = Field(75, ge=0, le=100)
    skill_gaps: List[SkillGap] = []
    recommendations: List[str] = []
    estimated_readiness_weeks: int = Field(0, ge=0)


class AssessmentResult(WireModel):
    """Outcome of one submitted attempt"""
    id: Optional[UUID] = None
    student_username: str
    track: Track
    correct_answers: int
    total_questions: int
    level: Level
    gaps: List[str] = []
    question_responses: List[QuestionResponse] = []
    ai_prediction: Optional[AIPrediction] = None
    confidence_score: Optional[int] = None
    degraded: bool = False
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Assessment API
# ---------------------------------------------------------------------------

class AttemptCreate(WireModel):
    """Request schema for starting an attempt"""
    track: Track
    num_questions: Optional[int] = Field(None, ge=1, le=20, description="Number of questions")


class TrackChange(WireModel):
    track: Track


class AnswerSubmit(WireModel):
    """Selected option index for MCQ, free text for short answers"""
    answer: Optional[RawAnswer] = None

    @field_validator("answer")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class QuestionView(WireModel):
    """A question as shown while answering (no answer key)"""
    id: str
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    topic: str
    difficulty: Difficulty

    @classmethod
    def from_question(cls, question: Question) -> "QuestionView":
        return cls(
            id=question.id,
            type=question.type,
            question=question.prompt,
            options=question.options,
            topic=question.topic,
            difficulty=question.difficulty,
        )


class GradedQuestion(WireModel):
    """A question with its verified grading, shown on the results screen"""
    id: str
    question: str
    topic: str
    difficulty: Difficulty
    your_answer: RawAnswer
    is_correct: bool
    correct_answer: RawAnswer
    explanation: str


class AttemptView(WireModel):
    """Serializable snapshot of an attempt's state"""
    attempt_id: UUID
    state: str  # loading, ready, submitting, results, error
    track: Track
    index: Optional[int] = None
    total_questions: Optional[int] = None
    question: Optional[QuestionView] = None
    answered: int = 0
    result: Optional[AssessmentResult] = None
    graded: List[GradedQuestion] = []
    degraded: bool = False
    saved: Optional[bool] = None
    notices: List[Notice] = []
    error: Optional[dict] = None


# ---------------------------------------------------------------------------
# Function endpoints (generate / verify / predict)
# ---------------------------------------------------------------------------

class GenerateRequest(WireModel):
    track: Track
    num_questions: int = Field(5, ge=1, le=20)


class GenerateResponse(WireModel):
    success: bool
    questions: List[Question] = []
    error: Optional[str] = None


class VerifyRequest(WireModel):
    questions: List[Question]
    user_answers: List[RawAnswer]
    track: Track


class VerifiedItem(WireModel):
    index: int
    is_correct: bool
    correct_answer: RawAnswer
    explanation: str
    topic: str


class VerifyResponse(WireModel):
    success: bool
    results: List[VerifiedItem] = []
    correct_count: int = 0
    total_questions: int = 0
    gaps: List[str] = []
    error: Optional[str] = None


class PredictRequest(WireModel):
    student_username: str
    track: Track
    correct_answers: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=1)
    gaps: List[str] = []
    question_responses: List[QuestionResponse] = []


class PredictResponse(WireModel):
    success: bool
    prediction: Optional[AIPrediction] = None
    metadata: Optional[dict] = None
    error: Optional[str] = None
