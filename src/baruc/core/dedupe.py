"""
Processed-message caches.

Guard against the transport re-delivering the same inbound event. The
in-memory cache is cleared wholesale every few minutes by the dispatcher's
periodic task; the Redis cache relies on key TTLs so several bot instances
can share it.
"""

from __future__ import annotations

import logging

from baruc.config import Settings
from baruc.exceptions import BarucException

logger = logging.getLogger(__name__)


class SeenMessageCache:
    """In-process set of processed message keys."""

    def __init__(self):
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    async def check_and_add(self, key: str) -> bool:
        """Record ``key``. Returns False when it was already seen."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    async def clear(self) -> None:
        self._seen.clear()


class RedisSeenMessageCache:
    """Processed message keys stored in Redis with SET NX + TTL."""

    def __init__(self, settings: Settings, client=None):
        self.prefix = settings.redis.seen_key_prefix
        self.ttl_seconds = max(1, int(settings.dispatch.seen_reset_seconds))
        self._url = settings.redis.url
        self._client = client

    def _get_redis(self):
        if self._client is not None:
            return self._client
        try:
            import redis.asyncio as redis  # type: ignore

            self._client = redis.Redis.from_url(self._url, decode_responses=False)
            return self._client
        except Exception as e:
            raise BarucException(
                code="DEDUPE_STORE_DOWN",
                message=f"Redis client init failed: {e}",
                status_code=503,
            )

    async def check_and_add(self, key: str) -> bool:
        client = self._get_redis()
        try:
            created = await client.set(f"{self.prefix}{key}", b"1", nx=True, ex=self.ttl_seconds)
        except Exception as e:
            # Fail open.
            logger.warning(f"Redis SET failed, treating message as new: {e}")
            return True
        return bool(created)

    async def clear(self) -> None:
        """Keys expire on their own."""
        return None


def build_seen_cache(settings: Settings) -> SeenMessageCache | RedisSeenMessageCache:
    if settings.dedupe_backend == "redis":
        logger.info("Using Redis processed-message cache")
        return RedisSeenMessageCache(settings)
    return SeenMessageCache()
