"""Tests for wiring collaborators from settings."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.adapters.cache.base import NullCacheStore
from app.adapters.cache.in_memory import InMemoryCacheStore
from app.adapters.cache.redis_store import RedisCacheStore
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.adapters.rate_limit.resilient import ResilientRateLimiter
from app.core.container import build_container


@pytest.mark.asyncio
async def test_memory_backends(test_settings) -> None:
    container = await build_container(test_settings)

    assert isinstance(container.cache_store, InMemoryCacheStore)
    assert isinstance(container.general_limiter, InMemoryRateLimiter)
    assert container.general_limiter.points == test_settings.rate_limit.max
    assert container.api_limiter.points == test_settings.rate_limit.max * 2
    assert container.redis is None
    assert container.cache_status() == "available"
    assert container.rate_limiter_status() == "local"


@pytest.mark.asyncio
async def test_disabled_features(test_settings) -> None:
    test_settings.cache.enabled = False
    test_settings.rate_limit.enabled = False

    container = await build_container(test_settings)

    assert isinstance(container.cache_store, NullCacheStore)
    assert container.general_limiter is None
    assert container.api_limiter is None
    assert container.cache_status() == "disabled"
    assert container.rate_limiter_status() == "disabled"


@pytest.mark.asyncio
async def test_redis_backends_share_one_connection(test_settings, fake_redis, redis_connection) -> None:
    test_settings.cache.backend = "redis"
    test_settings.rate_limit.backend = "redis"

    container = await build_container(test_settings, redis_connection=redis_connection)

    assert isinstance(container.cache_store, RedisCacheStore)
    assert isinstance(container.general_limiter, ResilientRateLimiter)
    assert container.rate_limiter_status() == "shared"

    await container.general_limiter.consume("ip")
    await container.api_limiter.consume("ip")
    assert {"rl:ip", "rl:api:ip"} <= set(fake_redis.data)

    await container.aclose()
    assert fake_redis.closed is True


@pytest.mark.asyncio
async def test_unreachable_redis_at_startup_selects_fallback(
    test_settings, fake_redis, redis_connection
) -> None:
    test_settings.cache.backend = "redis"
    test_settings.rate_limit.backend = "redis"
    fake_redis.fail_with = RedisConnectionError("refused")

    container = await build_container(test_settings, redis_connection=redis_connection)

    assert container.rate_limiter_status() == "fallback"
    assert container.cache_status() == "unavailable"
    assert container.general_limiter.points == test_settings.rate_limit.fallback_max
    assert container.api_limiter.points == test_settings.rate_limit.api_fallback_max
