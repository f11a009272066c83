"""
Gemini gateway: the single text-completion seam every AI feature goes through

The rest of the application treats the model as `complete(prompt) -> text`
(plus a streaming variant for chat) and only ever sees classified
AIServiceError failures.
"""
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from readiness.config import settings
from readiness.errors import AIServiceError, ErrorKind
import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)

# Configure Gemini API
genai.configure(api_key=settings.GEMINI_API_KEY)

RATE_LIMIT_RETRY_AFTER = 30  # seconds suggested to the client on HTTP 429

_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    """Remove markdown code blocks the model sometimes wraps JSON in"""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def extract_json(text: str, expect: type = list) -> Any:
    """
    Parse the JSON array (or object) embedded in a model response
    
    Args:
        text: Raw model output
        expect: list or dict
        
    Returns:
        Parsed JSON value of the expected type
        
    Raises:
        AIServiceError: parse_error when no value of the expected type is found
    """
    if not text or not text.strip():
        raise AIServiceError(ErrorKind.PARSE_ERROR, "Empty response from AI")
    
    cleaned = strip_code_fences(text)
    try:
        value = json.loads(cleaned)
    except json.JSONDecodeError:
        pattern = _ARRAY_PATTERN if expect is list else _OBJECT_PATTERN
        match = pattern.search(cleaned)
        if not match:
            kind = "array" if expect is list else "object"
            raise AIServiceError(ErrorKind.PARSE_ERROR, f"No JSON {kind} found in AI response")
        try:
            value = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AIServiceError(ErrorKind.PARSE_ERROR, f"Malformed JSON in AI response: {e}")
    
    if not isinstance(value, expect):
        raise AIServiceError(
            ErrorKind.PARSE_ERROR,
            f"Expected JSON {expect.__name__}, got {type(value).__name__}"
        )
    return value


def classify_error(exc: Exception) -> AIServiceError:
    """Map an SDK or transport exception onto the error taxonomy"""
    if isinstance(exc, AIServiceError):
        return exc
    
    code = getattr(exc, "code", None)
    if isinstance(exc, google_exceptions.GoogleAPICallError) and code is not None:
        code = int(code)
        if code == 429:
            return AIServiceError(
                ErrorKind.RATE_LIMITED,
                "Rate limit exceeded. Please try again in a moment.",
                retry_after=RATE_LIMIT_RETRY_AFTER
            )
        if code == 402:
            return AIServiceError(
                ErrorKind.QUOTA_EXHAUSTED,
                "AI usage limit reached. Please add credits."
            )
    
    return AIServiceError(ErrorKind.UNAVAILABLE, f"AI service unavailable: {exc}")


class GeminiService:
    """Service for all Gemini AI operations"""
    
    def __init__(self, model_name: Optional[str] = None, max_retries: Optional[int] = None):
        self.model_name = model_name or settings.GEMINI_MODEL
        self.max_retries = settings.AI_MAX_RETRIES if max_retries is None else max_retries
    
    def _model(self, system_instruction: Optional[str] = None):
        if system_instruction:
            return genai.GenerativeModel(self.model_name, system_instruction=system_instruction)
        return genai.GenerativeModel(self.model_name)
    
    async def complete(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Send one prompt and return the full text response
        
        Transport failures are retried once; rate limits and quota
        exhaustion are surfaced immediately.
        
        Raises:
            AIServiceError: classified failure
        """
        model = self._model(system_instruction)
        generation_config = {"temperature": temperature} if temperature is not None else None
        
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await model.generate_content_async(
                    prompt, generation_config=generation_config
                )
                return response.text
            except ValueError as e:
                # response.text raises when the candidate was blocked or empty
                raise AIServiceError(ErrorKind.PARSE_ERROR, f"AI returned no usable text: {e}")
            except Exception as e:
                error = classify_error(e)
                if error.retryable and attempt <= self.max_retries:
                    logger.warning(f"Gemini call failed ({e}), retrying ({attempt}/{self.max_retries})")
                    continue
                logger.error(f"Gemini call failed: {error.kind.value}: {str(e)}")
                raise error from e
    
    async def stream(
        self,
        messages: List[Dict[str, str]],
        *,
        system_instruction: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion as text deltas
        
        Args:
            messages: [{"role": "user"|"assistant", "content": "..."}]
            system_instruction: Optional system prompt
        """
        contents = [
            {
                "role": "model" if m.get("role") == "assistant" else "user",
                "parts": [m.get("content", "")]
            }
            for m in messages
        ]
        model = self._model(system_instruction)
        
        try:
            response = await model.generate_content_async(contents, stream=True)
            async for chunk in response:
                try:
                    text = chunk.text
                except ValueError:
                    continue
                if text:
                    yield text
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Gemini stream failed: {error.kind.value}: {str(e)}")
            raise error from e


# Global instance
gemini_service = GeminiService()
