"""Tests for the processed-message caches."""

import pytest

from baruc.config import DispatchSettings, RedisSettings, Settings
from baruc.core.dedupe import RedisSeenMessageCache, SeenMessageCache, build_seen_cache


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.values: dict[str, tuple[bytes, int]] = {}
        self.fail = fail

    async def set(self, key, value, nx=False, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        if nx and key in self.values:
            return None
        self.values[key] = (value, ex)
        return True


@pytest.mark.asyncio
async def test_memory_cache_rejects_repeats_until_cleared():
    cache = SeenMessageCache()

    assert await cache.check_and_add("g-1-baruc") is True
    assert await cache.check_and_add("g-1-baruc") is False
    await cache.clear()
    assert await cache.check_and_add("g-1-baruc") is True


@pytest.mark.asyncio
async def test_redis_cache_uses_prefix_and_ttl():
    client = FakeRedis()
    settings = Settings(
        redis=RedisSettings(seen_key_prefix="test:seen:"),
        dispatch=DispatchSettings(seen_reset_seconds=300),
    )
    cache = RedisSeenMessageCache(settings, client=client)

    assert await cache.check_and_add("g-1-baruc") is True
    assert await cache.check_and_add("g-1-baruc") is False
    assert client.values["test:seen:g-1-baruc"] == (b"1", 300)


@pytest.mark.asyncio
async def test_redis_outage_treats_message_as_new():
    cache = RedisSeenMessageCache(Settings(), client=FakeRedis(fail=True))

    assert await cache.check_and_add("g-1-baruc") is True


def test_backend_selection():
    assert isinstance(build_seen_cache(Settings()), SeenMessageCache)
    assert isinstance(build_seen_cache(Settings(dedupe_backend="redis")), RedisSeenMessageCache)
