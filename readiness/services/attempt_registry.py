"""
In-memory registry of assessment attempts

Each attempt keeps its current state and a lock. While a network-bound step
(generation or submission) holds the lock, further actions on that attempt
are refused rather than queued.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional

from readiness.schemas.assessment import Track
from readiness.services.attempt_machine import AttemptState, start

logger = logging.getLogger(__name__)


class AttemptBusy(Exception):
    """Another action on the same attempt is still in flight"""


@dataclass
class Attempt:
    id: uuid.UUID
    owner: str
    state: AttemptState
    num_questions: int
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class AttemptRegistry:
    """Attempts by id, scoped to their owner"""
    
    def __init__(self):
        self._attempts: Dict[uuid.UUID, Attempt] = {}
    
    def create(self, owner: str, track: Track, num_questions: int) -> Attempt:
        attempt = Attempt(
            id=uuid.uuid4(), owner=owner, state=start(track), num_questions=num_questions
        )
        self._attempts[attempt.id] = attempt
        logger.info(f"Attempt {attempt.id} created for {owner} ({attempt.state.track.value})")
        return attempt
    
    def get(self, attempt_id: uuid.UUID, owner: str) -> Optional[Attempt]:
        attempt = self._attempts.get(attempt_id)
        if attempt is None or attempt.owner != owner:
            return None
        return attempt
    
    def discard(self, attempt_id: uuid.UUID) -> None:
        self._attempts.pop(attempt_id, None)
    
    def discard_owner(self, owner: str) -> int:
        """Drop every attempt of one user (logout, retake)"""
        stale = [a.id for a in self._attempts.values() if a.owner == owner and not a.lock.locked()]
        for attempt_id in stale:
            del self._attempts[attempt_id]
        return len(stale)
    
    @asynccontextmanager
    async def hold(self, attempt: Attempt):
        """
        Exclusive access to one attempt
        
        Raises:
            AttemptBusy: the attempt is locked by another request
        """
        if attempt.lock.locked():
            raise AttemptBusy(f"Attempt {attempt.id} is busy")
        async with attempt.lock:
            yield attempt
    
    def __len__(self):
        return len(self._attempts)
