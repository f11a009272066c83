"""
Redis cache for AI learning-path rankings

A ranking depends only on the student's newest result and on the course
catalogue, so entries are keyed by result id and dropped wholesale when the
catalogue changes. An unreachable Redis disables caching; it never fails a
request.
"""
import redis
import json
import logging
from typing import Any, Dict, Optional
from readiness.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "learning_path"


class CacheService:
    """Learning-path ranking cache backed by Redis"""

    def __init__(self, url: Optional[str] = None, ttl: Optional[int] = None):
        self.ttl = ttl or settings.LEARNING_PATH_CACHE_TTL
        try:
            self.redis_client = redis.from_url(
                url or settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis_client.ping()
            logger.info("Redis connection established")
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis unavailable ({str(e)}); learning-path caching disabled")
            self.redis_client = None

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    @staticmethod
    def plan_key(username: str, result_id: Any) -> str:
        return f"{KEY_PREFIX}:{username}:{result_id}"

    def get_plan(self, username: str, result_id: Any) -> Optional[Dict[str, Any]]:
        """Cached ranking for one result, or None on miss, error or corrupt entry"""
        if not self.enabled:
            return None

        key = self.plan_key(username, result_id)
        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache read failed for {key}: {str(e)}")
            return None

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None
        try:
            plan = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring corrupt cache entry {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return plan

    def store_plan(self, username: str, result_id: Any, plan: Dict[str, Any]) -> bool:
        """
        Args:
            plan: JSON-serializable ranking (camelCase wire form)

        Returns:
            True if the entry was written
        """
        if not self.enabled:
            return False

        key = self.plan_key(username, result_id)
        try:
            self.redis_client.setex(key, self.ttl, json.dumps(plan))
        except redis.RedisError as e:
            logger.error(f"Cache write failed for {key}: {str(e)}")
            return False
        logger.debug(f"Cached {key} for {self.ttl}s")
        return True

    def invalidate(self, username: Optional[str] = None) -> int:
        """
        Drop cached rankings for one student, or for everyone

        Returns:
            Number of entries removed
        """
        if not self.enabled:
            return 0

        pattern = f"{KEY_PREFIX}:{username}:*" if username else f"{KEY_PREFIX}:*"
        try:
            keys = list(self.redis_client.scan_iter(match=pattern))
            if keys:
                self.redis_client.delete(*keys)
        except redis.RedisError as e:
            logger.error(f"Cache invalidation failed for {pattern}: {str(e)}")
            return 0

        if keys:
            logger.info(f"Invalidated {len(keys)} learning-path cache entries")
        return len(keys)


# Global instance
cache_service = CacheService()
