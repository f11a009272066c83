"""
Question generation client

Asks the AI gateway for a fresh set of questions for a track and normalizes
the returned shape. Every call embeds a random seed so retries produce new
questions rather than the same ones.
"""
import logging
import secrets
import time
from typing import Any, Dict, List

from readiness.errors import AIServiceError, ErrorKind, GenerationError
from readiness.schemas.assessment import Difficulty, Question, QuestionType, Track
from readiness.services.gemini_service import extract_json, gemini_service

logger = logging.getLogger(__name__)

MCQ_OPTION_COUNT = 4

TRACK_TOPICS: Dict[Track, str] = {
    Track.PROGRAMMING_DSA: (
        "Arrays, Linked Lists, Trees, Graphs, Sorting, Searching, DP, Recursion, "
        "Stacks, Queues, Heaps, Hashing, Strings, Complexity"
    ),
    Track.DATA_SCIENCE_ML: (
        "Statistics, Probability, Regression, Classification, Clustering, Neural Networks, "
        "NLP, Feature Engineering, Evaluation Metrics, Dimensionality Reduction, Ensemble Methods"
    ),
    Track.DATABASE_SQL: (
        "SQL queries, Joins, Normalization, Indexing, Transactions, ACID, NoSQL, "
        "Query optimization, ER diagrams, Stored procedures"
    ),
    Track.BACKEND_WEB: (
        "REST APIs, HTTP methods/status codes, Authentication (JWT, OAuth), Node.js, Express, "
        "Middleware, Databases, Caching, WebSockets, Microservices"
    ),
}

_SHORT_ANSWER_TYPES = {"coding", "short", "short_answer", "shortanswer", "text"}


class QuestionService:
    """Generates and validates assessment questions"""
    
    def __init__(self, gateway=None):
        self.gateway = gateway or gemini_service
    
    async def generate(self, track: Track, count: int) -> List[Question]:
        """
        Generate `count` fresh questions for a track
        
        Returns:
            Exactly `count` normalized questions
            
        Raises:
            GenerationError: rate_limited, quota_exhausted, parse_error or unavailable
        """
        track = Track(track)
        if count < 1:
            raise ValueError("count must be a positive integer")
        
        logger.info(f"Generating {count} questions for track: {track.value}")
        
        try:
            text = await self.gateway.complete(
                self._user_prompt(track, count),
                system_instruction=self._system_prompt(track, count)
            )
            items = extract_json(text, expect=list)
            questions = self.normalize(items, count)
        except AIServiceError as e:
            logger.error(f"Question generation failed for {track.value}: {e.message}")
            raise GenerationError.wrap(e) from e
        except (TypeError, ValueError) as e:
            logger.error(f"Malformed questions for {track.value}: {str(e)}")
            raise GenerationError(ErrorKind.PARSE_ERROR, f"Malformed question payload: {str(e)}") from e

        logger.info(f"Successfully generated {len(questions)} questions")
        return questions
    
    def normalize(self, items: List[Any], count: int) -> List[Question]:
        """
        Coerce raw AI items into Questions and enforce the structural contract
        
        Raises:
            AIServiceError: parse_error on wrong count or malformed items
        """
        if len(items) != count:
            raise AIServiceError(
                ErrorKind.PARSE_ERROR,
                f"Expected {count} questions, got {len(items)}"
            )
        return [self._normalize_item(item, i) for i, item in enumerate(items)]
    
    def _normalize_item(self, item: Any, position: int) -> Question:
        if not isinstance(item, dict):
            raise AIServiceError(ErrorKind.PARSE_ERROR, f"Question {position + 1} is not an object")
        
        prompt = str(item.get("question") or "").strip()
        if not prompt:
            raise AIServiceError(ErrorKind.PARSE_ERROR, f"Question {position + 1} has no text")
        
        raw_type = str(item.get("type") or "mcq").strip().lower()
        q_type = QuestionType.SHORT_ANSWER if raw_type in _SHORT_ANSWER_TYPES else QuestionType.MCQ
        
        difficulty = item.get("difficulty")
        if not isinstance(difficulty, str) or difficulty not in {d.value for d in Difficulty}:
            difficulty = Difficulty.MEDIUM.value
        
        options = None
        correct_answer = item.get("correctAnswer", item.get("correct_answer"))
        
        if q_type == QuestionType.MCQ:
            options = item.get("options")
            if not isinstance(options, list) or len(options) != MCQ_OPTION_COUNT:
                raise AIServiceError(
                    ErrorKind.PARSE_ERROR,
                    f"MCQ {position + 1} must have exactly {MCQ_OPTION_COUNT} options"
                )
            options = [str(option) for option in options]
            correct_answer = self._coerce_index(correct_answer, position)
        else:
            if correct_answer is None or not str(correct_answer).strip():
                raise AIServiceError(
                    ErrorKind.PARSE_ERROR,
                    f"Short-answer question {position + 1} has no correct answer"
                )
            correct_answer = str(correct_answer).strip()
        
        return Question(
            id=str(item.get("id") or f"q-{position + 1}"),
            type=q_type,
            prompt=prompt,
            options=options,
            correct_answer=correct_answer,
            topic=str(item.get("topic") or "General"),
            explanation=str(item.get("explanation") or "No explanation provided."),
            difficulty=difficulty,
        )
    
    @staticmethod
    def _coerce_index(value: Any, position: int) -> int:
        if isinstance(value, bool):
            value = None
        try:
            index = int(value)
        except (TypeError, ValueError):
            raise AIServiceError(
                ErrorKind.PARSE_ERROR,
                f"MCQ {position + 1} correct answer is not an option index"
            )
        if not 0 <= index < MCQ_OPTION_COUNT:
            raise AIServiceError(
                ErrorKind.PARSE_ERROR,
                f"MCQ {position + 1} correct answer index {index} is out of range"
            )
        return index
    
    def _system_prompt(self, track: Track, count: int) -> str:
        topics = "\n".join(f'- "{t.value}": {TRACK_TOPICS[t]}' for t in Track)
        return f"""You are an expert assessment question generator for placement preparation. Generate exactly {count} unique questions for the "{track.value}" track.

CRITICAL RULES FOR CORRECTNESS:
- Double-check every answer before including it. The correctAnswer MUST be genuinely correct.
- For MCQ: correctAnswer is the 0-based INDEX of the correct option.
- For short-answer: correctAnswer is the EXACT text the student must type. Keep it simple (a number, a term, Big-O notation like "O(n)", etc.)
- Include a clear explanation proving WHY the answer is correct.
- DO NOT include trick questions or ambiguous questions.

QUESTION GUIDELINES:
- Generate a MIX of MCQ and short-answer (coding) questions
- Include variety: Easy, Medium, Hard difficulty
- Each question must test a DIFFERENT topic
- MCQ questions must have exactly 4 options with only ONE clearly correct answer

Return ONLY a JSON array (no markdown, no extra text):
[
  {{
    "id": "q-1",
    "type": "mcq",
    "question": "Question text?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 1,
    "topic": "Topic Name",
    "explanation": "Why option at index 1 is correct.",
    "difficulty": "Easy"
  }},
  {{
    "id": "q-2",
    "type": "coding",
    "question": "Question text?",
    "correctAnswer": "answer",
    "topic": "Different Topic",
    "explanation": "Why the answer is correct.",
    "difficulty": "Medium"
  }}
]

Track topics:
{topics}"""
    
    @staticmethod
    def _user_prompt(track: Track, count: int) -> str:
        seed = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        return (
            f'Generate {count} fresh, unique assessment questions for the "{track.value}" track. '
            f"VERIFY each answer is correct before including it. Random seed: {seed}"
        )


# Global instance
question_service = QuestionService()
