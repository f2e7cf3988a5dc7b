"""Composition root: builds every collaborator from settings.

The container is created once per application (in the lifespan handler) and
stored on ``app.state.container``. Tests build their own container with
in-memory backends and pass it to ``create_app``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.cache.base import AbstractCacheStore, NullCacheStore
from app.adapters.cache.in_memory import InMemoryCacheStore
from app.adapters.cache.redis_store import RedisCacheStore
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.adapters.rate_limit.redis_limiter import RedisRateLimiter
from app.adapters.rate_limit.resilient import ResilientRateLimiter
from app.adapters.redis_connection import RedisConnection
from app.adapters.store.base import AbstractChapterRepository
from app.adapters.store.in_memory import InMemoryChapterRepository
from app.core.cache_keys import CacheKeyBuilder
from app.core.config import CacheSettings, RateLimitSettings, Settings
from app.services.chapter_service import ChapterService
from app.services.read_through import ReadThroughCache

logger = logging.getLogger(__name__)

GENERAL_KEY_PREFIX = "rl:"
API_KEY_PREFIX = "rl:api:"


@dataclass
class AppContainer:
    """Every long-lived collaborator of the application.

    Limiters are None when rate limiting is disabled. ``redis`` is None when
    no component is configured to use the shared store.
    """

    settings: Settings
    cache_store: AbstractCacheStore
    read_cache: ReadThroughCache
    repository: AbstractChapterRepository
    chapter_service: ChapterService
    general_limiter: AbstractRateLimiter | None = None
    api_limiter: AbstractRateLimiter | None = None
    redis: RedisConnection | None = None

    def cache_status(self) -> str:
        if not self.settings.cache.enabled:
            return "disabled"
        return "available" if self.cache_store.available else "unavailable"

    def rate_limiter_status(self) -> str:
        limiter = self.general_limiter
        if limiter is None:
            return "disabled"
        if isinstance(limiter, ResilientRateLimiter) and limiter.using_fallback:
            return "fallback"
        return "shared" if isinstance(limiter, ResilientRateLimiter) else "local"

    async def aclose(self) -> None:
        if self.redis is not None:
            await self.redis.close()


def _uses_redis(settings: Settings) -> bool:
    cache_on_redis = settings.cache.enabled and settings.cache.backend == "redis"
    limits_on_redis = settings.rate_limit.enabled and settings.rate_limit.backend == "redis"
    return cache_on_redis or limits_on_redis


def build_cache_store(
    cache_settings: CacheSettings,
    connection: RedisConnection | None,
) -> AbstractCacheStore:
    if not cache_settings.enabled:
        return NullCacheStore()
    if cache_settings.backend == "memory" or connection is None:
        return InMemoryCacheStore(max_entries=cache_settings.max_entries)
    return RedisCacheStore(connection, namespace=cache_settings.prefix)


def build_rate_limiters(
    rl: RateLimitSettings,
    connection: RedisConnection | None,
    *,
    primary_available: bool = True,
) -> tuple[AbstractRateLimiter | None, AbstractRateLimiter | None]:
    """Build the (general, api) limiter tiers.

    With the redis backend each tier is a shared-store limiter supervised by
    a ``ResilientRateLimiter`` that falls back to a smaller in-process
    allowance while the store is unreachable.
    """
    if not rl.enabled:
        return None, None

    if rl.backend == "memory" or connection is None:
        general = InMemoryRateLimiter(
            points=rl.max,
            duration_seconds=rl.window_seconds,
            block_duration_seconds=rl.block_seconds,
        )
        api = InMemoryRateLimiter(
            points=rl.api_max,
            duration_seconds=rl.window_seconds,
            block_duration_seconds=rl.api_block_seconds,
        )
        return general, api

    tiers = (
        ("general", GENERAL_KEY_PREFIX, rl.max, rl.block_seconds, rl.fallback_max),
        ("api", API_KEY_PREFIX, rl.api_max, rl.api_block_seconds, rl.api_fallback_max),
    )
    built = []
    for name, key_prefix, points, block, fallback_points in tiers:
        primary = RedisRateLimiter(
            connection,
            key_prefix=key_prefix,
            points=points,
            duration_seconds=rl.window_seconds,
            block_duration_seconds=block,
        )
        fallback = InMemoryRateLimiter(
            points=fallback_points,
            duration_seconds=rl.fallback_window_seconds,
        )
        built.append(
            ResilientRateLimiter(
                primary,
                fallback,
                name=name,
                probe=connection.probe,
                probe_interval=rl.probe_interval_seconds,
                primary_available=primary_available,
            )
        )
    return built[0], built[1]


async def build_container(
    settings: Settings,
    *,
    repository: AbstractChapterRepository | None = None,
    redis_connection: RedisConnection | None = None,
) -> AppContainer:
    """Wire the application from ``settings``.

    Args:
        settings: Application settings.
        repository: Chapter store to use (defaults to an in-memory store).
        redis_connection: Pre-built connection, mainly for tests. One is
            created from ``settings.redis`` when needed and not given.
    """
    connection = redis_connection
    if connection is None and _uses_redis(settings):
        connection = RedisConnection.from_settings(settings.redis)

    redis_up = False
    if connection is not None:
        redis_up = await connection.probe()
        if not redis_up:
            logger.warning("container.redis_unavailable_at_startup")

    cache_store = build_cache_store(settings.cache, connection)
    read_cache = ReadThroughCache(cache_store, default_ttl=settings.cache.ttl_seconds)
    repository = repository or InMemoryChapterRepository()
    chapter_service = ChapterService(
        repository,
        read_cache,
        CacheKeyBuilder(settings.cache.prefix),
    )
    general_limiter, api_limiter = build_rate_limiters(
        settings.rate_limit,
        connection,
        primary_available=redis_up,
    )

    logger.info(
        "container.built",
        extra={
            "cache_backend": type(cache_store).__name__,
            "rate_limit_backend": type(general_limiter).__name__ if general_limiter else None,
            "redis_available": redis_up,
        },
    )
    return AppContainer(
        settings=settings,
        cache_store=cache_store,
        read_cache=read_cache,
        repository=repository,
        chapter_service=chapter_service,
        general_limiter=general_limiter,
        api_limiter=api_limiter,
        redis=connection,
    )
