"""
Assessment attempt state machine

States:  Loading -> Ready(0) -> ... -> Ready(N-1) -> Submitting -> Results
         Loading -> Failed, Submitting -> Failed, Failed -> Loading (retry)
         any state but Submitting -> Loading (track change)

`reduce` is pure: it never performs I/O, it only decides the next state.
The API layer runs the network-bound work (generation, submission) and
feeds the outcome back in as an event.
"""
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from readiness.errors import InvalidTransition
from readiness.schemas.assessment import Answer, Question, QuestionType, RawAnswer, Track


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Loading:
    track: Track
    name = "loading"


@dataclass(frozen=True)
class Ready:
    track: Track
    questions: Tuple[Question, ...]
    index: int = 0
    answers: Tuple[Answer, ...] = ()
    name = "ready"

    @property
    def question(self) -> Question:
        return self.questions[self.index]

    @property
    def is_last(self) -> bool:
        return self.index == len(self.questions) - 1


@dataclass(frozen=True)
class Submitting:
    track: Track
    questions: Tuple[Question, ...]
    answers: Tuple[Answer, ...]
    name = "submitting"

    def __post_init__(self):
        if len(self.answers) != len(self.questions):
            raise ValueError(
                f"{len(self.answers)} answers recorded for {len(self.questions)} questions"
            )


@dataclass(frozen=True)
class Results:
    track: Track
    questions: Tuple[Question, ...]
    answers: Tuple[Answer, ...]
    outcome: Any  # SubmissionOutcome
    name = "results"


@dataclass(frozen=True)
class Failed:
    track: Track
    error: Exception
    questions: Tuple[Question, ...] = ()
    answers: Tuple[Answer, ...] = ()
    name = "error"


AttemptState = Union[Loading, Ready, Submitting, Results, Failed]


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QuestionsLoaded:
    questions: Tuple[Question, ...]


@dataclass(frozen=True)
class GenerationFailed:
    error: Exception


@dataclass(frozen=True)
class AnswerProvided:
    raw_answer: Optional[RawAnswer]


@dataclass(frozen=True)
class SubmissionSettled:
    outcome: Any


@dataclass(frozen=True)
class SubmissionFailed:
    error: Exception


@dataclass(frozen=True)
class TrackChanged:
    track: Track


@dataclass(frozen=True)
class RetryRequested:
    pass


AttemptEvent = Union[
    QuestionsLoaded, GenerationFailed, AnswerProvided, SubmissionSettled,
    SubmissionFailed, TrackChanged, RetryRequested,
]


# ---------------------------------------------------------------------------
# Answer guard
# ---------------------------------------------------------------------------

def normalize_answer(question: Question, raw: Optional[RawAnswer]) -> Optional[RawAnswer]:
    """
    Return the answer in its recorded form, or None if nothing usable was given
    
    MCQ answers are option indexes (digit strings are accepted); short answers
    are trimmed, non-empty text.
    """
    if raw is None or isinstance(raw, bool):
        return None
    
    if question.type == QuestionType.MCQ:
        if isinstance(raw, str):
            if not raw.strip().isdigit():
                return None
            raw = int(raw.strip())
        option_count = len(question.options or [])
        return raw if 0 <= raw < option_count else None
    
    text = str(raw).strip()
    return text or None


def can_advance(question: Question, raw: Optional[RawAnswer]) -> bool:
    """The guard on Ready(i) -> Ready(i+1) and Ready(N-1) -> Submitting"""
    return normalize_answer(question, raw) is not None


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def start(track: Track) -> Loading:
    return Loading(track=Track(track))


def reduce(state: AttemptState, event: AttemptEvent) -> AttemptState:
    """
    Compute the next state
    
    An AnswerProvided that fails the guard leaves the state unchanged.
    
    Raises:
        InvalidTransition: the event is not accepted in the current state
    """
    if isinstance(event, TrackChanged):
        if isinstance(state, Submitting):
            raise InvalidTransition(state.name, type(event).__name__)
        return Loading(track=Track(event.track))
    
    if isinstance(state, Loading):
        if isinstance(event, QuestionsLoaded):
            if not event.questions:
                raise ValueError("Cannot start an attempt without questions")
            return Ready(track=state.track, questions=tuple(event.questions))
        if isinstance(event, GenerationFailed):
            return Failed(track=state.track, error=event.error)
    
    elif isinstance(state, Ready):
        if isinstance(event, AnswerProvided):
            return _record_answer(state, event.raw_answer)
    
    elif isinstance(state, Submitting):
        if isinstance(event, SubmissionSettled):
            return Results(
                track=state.track,
                questions=state.questions,
                answers=state.answers,
                outcome=event.outcome,
            )
        if isinstance(event, SubmissionFailed):
            return Failed(
                track=state.track,
                error=event.error,
                questions=state.questions,
                answers=state.answers,
            )
    
    elif isinstance(state, Failed):
        if isinstance(event, RetryRequested):
            return Loading(track=state.track)
    
    raise InvalidTransition(state.name, type(event).__name__)


def _record_answer(state: Ready, raw: Optional[RawAnswer]) -> AttemptState:
    question = state.question
    value = normalize_answer(question, raw)
    if value is None:
        return state
    
    answer = Answer(
        question_id=question.id,
        raw_answer=value,
        topic=question.topic,
        difficulty=question.difficulty,
    )
    answers = state.answers + (answer,)
    
    if state.is_last:
        return Submitting(track=state.track, questions=state.questions, answers=answers)
    return Ready(
        track=state.track,
        questions=state.questions,
        index=state.index + 1,
        answers=answers,
    )
