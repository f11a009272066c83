"""
Error taxonomy for the AI collaborators and the persistence adapter

AI failures are classified once, at the gateway, and keep their kind as they
travel up through generation, verification and prediction.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXHAUSTED = "quota_exhausted"
    PARSE_ERROR = "parse_error"
    UNAVAILABLE = "unavailable"


_STATUS_BY_KIND = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.QUOTA_EXHAUSTED: 402,
    ErrorKind.PARSE_ERROR: 502,
    ErrorKind.UNAVAILABLE: 503,
}


class AIServiceError(Exception):
    """A classified failure of the generative-AI gateway"""

    def __init__(self, kind: ErrorKind, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retry_after = retry_after

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]

    @property
    def retryable(self) -> bool:
        """Transport-level failures only; rate limits and quota surface immediately"""
        return self.kind == ErrorKind.UNAVAILABLE

    @classmethod
    def wrap(cls, err: "AIServiceError", message: Optional[str] = None):
        """Re-raise a gateway error under a more specific operation type"""
        return cls(err.kind, message or err.message, retry_after=err.retry_after)

    def to_detail(self) -> dict:
        detail = {"error": self.kind.value, "message": self.message}
        if self.retry_after is not None:
            detail["retry_after"] = self.retry_after
        return detail

    def __repr__(self):
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r})"


class GenerationError(AIServiceError):
    """Question generation failed; terminal for the current attempt"""


class VerificationUnavailable(AIServiceError):
    """AI verifier failed; callers fall back to local grading"""


class PredictionUnavailable(AIServiceError):
    """Skill prediction failed; callers fall back to the heuristic prediction"""


class PersistenceFailure(Exception):
    """A write or read against the relational store failed"""


class InvalidTransition(Exception):
    """An event that the current assessment state does not accept"""

    def __init__(self, state_name: str, event_name: str):
        super().__init__(f"Cannot apply {event_name} while {state_name}")
        self.state_name = state_name
        self.event_name = event_name
