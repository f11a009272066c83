"""
Per-client request throttling

Requests are counted in sliding one-minute and one-hour windows. A client is
the session user when the bearer token is known, so students behind one
campus IP do not share a budget; anonymous callers are keyed by IP.
"""
import time
from collections import defaultdict, deque
from fastapi import Request
from typing import Callable, Deque, Dict, Optional
import logging

from readiness.config import settings

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Client used up one of its windows"""

    def __init__(self, window: str, limit: int, retry_after: int):
        super().__init__(f"Too many requests. Limit: {limit} requests per {window}")
        self.window = window
        self.limit = limit
        self.retry_after = retry_after

    def to_detail(self) -> dict:
        return {
            "error": "rate_limit_exceeded",
            "message": str(self),
            "retry_after": self.retry_after,
        }


class RateLimiter:
    """
    In-memory sliding-window rate limiter
    Single process only; every worker keeps its own counts
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        # window name -> (seconds, max requests)
        self.windows = {
            "minute": (60, requests_per_minute),
            "hour": (3600, requests_per_hour),
        }
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def client_id(self, request: Request) -> str:
        auth = request.headers.get("authorization", "")
        sessions = getattr(request.app.state, "sessions", None)
        if auth.lower().startswith("bearer ") and sessions is not None:
            session = sessions.get(auth[7:].strip())
            if session is not None:
                return f"user:{session.username}"

        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    def _exceeded(self, hits: Deque[float], now: float) -> Optional[RateLimitExceeded]:
        longest = max(seconds for seconds, _ in self.windows.values())
        while hits and hits[0] <= now - longest:
            hits.popleft()

        for name, (seconds, limit) in self.windows.items():
            recent = [t for t in hits if t > now - seconds]
            if len(recent) >= limit:
                # A slot frees when the oldest of the last `limit` hits ages out
                wait = int(recent[-limit] + seconds - now) + 1
                return RateLimitExceeded(name, limit, wait)
        return None

    def check(self, request: Request) -> None:
        """
        Count one request against the caller's budget

        Raises:
            RateLimitExceeded: a window is full; the request is not counted
        """
        client = self.client_id(request)
        hits = self._hits[client]
        now = self.clock()

        exceeded = self._exceeded(hits, now)
        if exceeded is not None:
            logger.warning(f"Rate limit exceeded ({exceeded.window}): {client}")
            raise exceeded

        hits.append(now)

    def reset(self) -> None:
        self._hits.clear()


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)
