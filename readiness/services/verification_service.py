"""
Answer verification with a local fallback comparator

Primary: the whole batch goes to the AI verifier in one call, so grading is
internally consistent and the verifier may correct the answer key produced
at generation time.
Fallback: exact comparison against the original answer key, flagged as
degraded because it cannot judge equivalent answers.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from readiness.errors import AIServiceError, ErrorKind, VerificationUnavailable
from readiness.schemas.assessment import (
    Question, QuestionResponse, QuestionType, RawAnswer, Track, VerifiedAnswer,
)
from readiness.services.gemini_service import extract_json, gemini_service

logger = logging.getLogger(__name__)


@dataclass
class VerificationOutcome:
    """Per-question grading in question order, plus the figures derived from it"""
    results: List[VerifiedAnswer]
    questions: List[Question]  # answer key as corrected by the verifier
    degraded: bool = False
    error: Optional[AIServiceError] = None
    correct_count: int = field(init=False)
    gaps: List[str] = field(init=False)

    def __post_init__(self):
        self.correct_count = sum(1 for r in self.results if r.is_correct)
        self.gaps = derive_gaps(self.questions, self.results)

    def question_responses(self) -> List[QuestionResponse]:
        return [
            QuestionResponse(
                question_id=q.id,
                topic=q.topic,
                is_correct=r.is_correct,
                difficulty=q.difficulty,
            )
            for q, r in zip(self.questions, self.results)
        ]


def derive_gaps(questions: Sequence[Question], results: Sequence[VerifiedAnswer]) -> List[str]:
    """Distinct topics answered incorrectly, in question order"""
    gaps: List[str] = []
    for question, result in zip(questions, results):
        if not result.is_correct and question.topic not in gaps:
            gaps.append(question.topic)
    return gaps


def compare_locally(question: Question, raw_answer: RawAnswer) -> bool:
    """
    Exact-match grading against the original answer key
    
    MCQ: selected index == correct index.
    Short answer: uppercase(trim(answer)) == uppercase(trim(correct)).
    """
    if question.type == QuestionType.MCQ:
        try:
            return int(raw_answer) == int(question.correct_answer)
        except (TypeError, ValueError):
            return False
    return str(raw_answer).strip().upper() == str(question.correct_answer).strip().upper()


class VerificationService:
    """Grades a full answer set"""
    
    def __init__(self, gateway=None):
        self.gateway = gateway or gemini_service
    
    async def verify(
        self,
        questions: Sequence[Question],
        raw_answers: Sequence[RawAnswer],
        track: Track
    ) -> VerificationOutcome:
        """
        Grade every answer, falling back to local comparison if the AI fails
        
        Never raises for verifier failures; check `degraded` on the outcome.
        """
        questions = list(questions)
        raw_answers = list(raw_answers)
        if len(questions) != len(raw_answers):
            raise ValueError(
                f"{len(raw_answers)} answers supplied for {len(questions)} questions"
            )
        
        try:
            results = await self.verify_with_ai(questions, raw_answers, track)
        except VerificationUnavailable as e:
            logger.warning(
                f"AI verification unavailable ({e.kind.value}: {e.message}); "
                f"grading {len(questions)} answers locally"
            )
            return self.verify_locally(questions, raw_answers, error=e)
        
        corrected = [
            q.model_copy(update={
                "correct_answer": r.canonical_correct_answer,
                "explanation": r.explanation,
            })
            for q, r in zip(questions, results)
        ]
        outcome = VerificationOutcome(results=results, questions=corrected)
        logger.info(f"Verification complete: {outcome.correct_count}/{len(questions)} correct")
        return outcome
    
    def verify_locally(
        self,
        questions: List[Question],
        raw_answers: List[RawAnswer],
        error: Optional[AIServiceError] = None
    ) -> VerificationOutcome:
        """Fallback comparator; the outcome is always marked degraded"""
        results = [
            VerifiedAnswer(
                is_correct=compare_locally(q, a),
                canonical_correct_answer=q.correct_answer,
                explanation=q.explanation,
                topic=q.topic,
            )
            for q, a in zip(questions, raw_answers)
        ]
        return VerificationOutcome(results=results, questions=questions, degraded=True, error=error)
    
    async def verify_with_ai(
        self,
        questions: List[Question],
        raw_answers: List[RawAnswer],
        track: Track
    ) -> List[VerifiedAnswer]:
        """
        Raises:
            VerificationUnavailable: gateway failure, unparseable payload or
                a results array whose length differs from the questions
        """
        payload = [
            self._describe(i, q, a) for i, (q, a) in enumerate(zip(questions, raw_answers))
        ]
        prompt = f"Verify these assessment answers:\n\n{json.dumps(payload, indent=2)}"
        
        try:
            text = await self.gateway.complete(prompt, system_instruction=self._system_prompt(track))
            items = extract_json(text, expect=list)
            return self._parse_results(items, questions)
        except AIServiceError as e:
            raise VerificationUnavailable.wrap(e) from e
    
    def _parse_results(self, items: List[Any], questions: List[Question]) -> List[VerifiedAnswer]:
        if len(items) != len(questions):
            raise AIServiceError(
                ErrorKind.PARSE_ERROR,
                f"Verifier returned {len(items)} results for {len(questions)} questions"
            )
        if not all(isinstance(item, dict) for item in items):
            raise AIServiceError(ErrorKind.PARSE_ERROR, "Verifier results must be objects")
        
        items = self._order_by_index(items)
        results = []
        for item, question in zip(items, questions):
            if not isinstance(item.get("isCorrect"), bool):
                raise AIServiceError(
                    ErrorKind.PARSE_ERROR,
                    f"Verifier result for {question.id} has no boolean isCorrect"
                )
            results.append(VerifiedAnswer(
                is_correct=item["isCorrect"],
                canonical_correct_answer=self._canonical_answer(item.get("correctAnswer"), question),
                explanation=str(item.get("explanation") or question.explanation),
                topic=question.topic,
            ))
        return results
    
    @staticmethod
    def _order_by_index(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Use the verifier's `index` fields when they form a complete permutation"""
        indexes = [item.get("index") for item in items]
        if all(isinstance(i, int) and not isinstance(i, bool) for i in indexes) \
                and sorted(indexes) == list(range(len(items))):
            return sorted(items, key=lambda item: item["index"])
        return items
    
    @staticmethod
    def _canonical_answer(value: Any, question: Question) -> RawAnswer:
        if value is None or isinstance(value, bool):
            return question.correct_answer
        if question.type == QuestionType.MCQ:
            try:
                index = int(value)
            except (TypeError, ValueError):
                # Verifier answered with option text
                options = question.options or []
                return options.index(value) if value in options else question.correct_answer
            return index if 0 <= index < len(question.options or []) else question.correct_answer
        return str(value).strip() or question.correct_answer
    
    @staticmethod
    def _describe(index: int, question: Question, raw_answer: RawAnswer) -> Dict[str, Any]:
        options = question.options or []
        if question.type == QuestionType.MCQ and isinstance(raw_answer, int) and raw_answer < len(options):
            user_answer = f'Option {raw_answer} ("{options[raw_answer]}")'
        else:
            user_answer = str(raw_answer)
        
        if question.type == QuestionType.MCQ:
            key = question.correct_answer
            key_text = options[key] if isinstance(key, int) and key < len(options) else ""
            original = f'Option {key} ("{key_text}")'
        else:
            original = question.correct_answer
        
        return {
            "index": index,
            "question": question.prompt,
            "type": question.type.value,
            "options": question.options,
            "originalCorrectAnswer": original,
            "userAnswer": user_answer,
            "topic": question.topic,
            "difficulty": question.difficulty.value,
        }
    
    @staticmethod
    def _system_prompt(track: Track) -> str:
        return f"""You are an expert answer verifier for a {Track(track).value} assessment. Your job is to verify each answer with 100% accuracy.

For each question below, you must:
1. Determine the GENUINELY CORRECT answer (ignore the "originalCorrectAnswer" if it's wrong)
2. Check if the user's answer matches the correct answer
3. For short-answer/coding questions, accept equivalent answers (e.g., "O(n^2)" and "O(N^2)" are the same; "HashMap" and "Hash Map" are the same)
4. Provide a brief explanation for each

Return ONLY a JSON array (no markdown, no extra text):
[
  {{
    "index": 0,
    "isCorrect": true,
    "correctAnswer": "The actual correct answer",
    "explanation": "Why this is the correct answer",
    "topic": "Topic name"
  }}
]

IMPORTANT:
- If the original correct answer was wrong, override it.
- For MCQ, return the correct 0-based option INDEX as correctAnswer
- For coding/short-answer, return the correct text as correctAnswer
- Accept reasonable variations in short answers (case-insensitive, minor formatting differences)"""


# Global instance
verification_service = VerificationService()
