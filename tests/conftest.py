"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any app import so the module-level
settings are built with in-memory backends and a known admin token.
"""

import fnmatch
import os
import time
from typing import Any, Callable

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("AUTH_ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from app.adapters.redis_connection import RedisConnection
from app.adapters.store.in_memory import InMemoryChapterRepository
from app.core.config import Settings
from app.core.container import AppContainer, build_container

ADMIN_TOKEN = "test-admin-token"


class FakePipeline:
    """Queues commands and runs them back to back on ``execute``."""

    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._commands.clear()

    def __getattr__(self, name: str) -> Callable[..., "FakePipeline"]:
        def _queue(*args: Any, **kwargs: Any) -> "FakePipeline":
            self._commands.append((name, args, kwargs))
            return self

        return _queue

    async def execute(self) -> list[Any]:
        self._redis._check()
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands.clear()
        return results


class FakeRedis:
    """In-process async double of the ``redis.asyncio.Redis`` calls we use.

    Set ``fail_with`` to an exception instance to make every command raise it.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.data: dict[str, str] = {}
        self.expires_at: dict[str, float] = {}
        self.clock = clock
        self.fail_with: Exception | None = None
        self.closed = False
        self.calls: list[str] = []

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    async def ping(self) -> bool:
        self.calls.append("ping")
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self.calls.append("get")
        self._check()
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None, nx: bool = False) -> bool | None:
        self.calls.append("set")
        self._check()
        self._purge(key)
        if nx and key in self.data:
            return None
        self.data[key] = str(value)
        if ex is not None:
            self.expires_at[key] = self.clock() + ex
        else:
            self.expires_at.pop(key, None)
        return True

    async def incrby(self, key: str, amount: int = 1) -> int:
        self.calls.append("incrby")
        self._check()
        self._purge(key)
        value = int(self.data.get(key, "0")) + amount
        self.data[key] = str(value)
        return value

    async def pttl(self, key: str) -> int:
        self._check()
        self._purge(key)
        if key not in self.data:
            return -2
        deadline = self.expires_at.get(key)
        if deadline is None:
            return -1
        return int((deadline - self.clock()) * 1000)

    async def expire(self, key: str, seconds: int) -> bool:
        return await self.pexpire(key, seconds * 1000)

    async def pexpire(self, key: str, milliseconds: int) -> bool:
        self._check()
        self._purge(key)
        if key not in self.data:
            return False
        self.expires_at[key] = self.clock() + milliseconds / 1000
        return True

    async def delete(self, *keys: str) -> int:
        self.calls.append("delete")
        self._check()
        removed = 0
        for key in keys:
            self._purge(key)
            if key in self.data:
                del self.data[key]
                self.expires_at.pop(key, None)
                removed += 1
        return removed

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        self.calls.append("scan_iter")
        self._check()
        for key in list(self.data):
            self._purge(key)
            if key in self.data and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    async def flushdb(self) -> bool:
        self.calls.append("flushdb")
        self._check()
        self.data.clear()
        self.expires_at.clear()
        return True

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_connection(fake_redis: FakeRedis) -> RedisConnection:
    return RedisConnection(lambda: fake_redis, reconnect_interval=30.0)


@pytest.fixture
def test_settings() -> Settings:
    """Fresh settings with in-memory backends and a known admin token."""
    settings = Settings()
    settings.cache.backend = "memory"
    settings.cache.enabled = True
    settings.rate_limit.backend = "memory"
    settings.rate_limit.enabled = True
    settings.auth.admin_token = ADMIN_TOKEN
    settings.store.seed_file = None
    return settings


@pytest.fixture
def container(test_settings: Settings) -> AppContainer:
    import asyncio

    return asyncio.run(build_container(test_settings, repository=InMemoryChapterRepository()))


@pytest.fixture
def client(container: AppContainer) -> TestClient:
    from app.core.app_factory import create_app

    return TestClient(create_app(container))


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}


def make_chapter(**overrides: Any) -> dict[str, Any]:
    """Chapter record in the public JSON shape."""
    record = {
        "subject": "Physics",
        "chapter": "Kinematics",
        "class": "Class 11",
        "unit": "Mechanics 1",
        "yearWiseQuestionCount": {"2023": 3, "2024": 2},
        "questionSolved": 4,
        "status": "Completed",
        "isWeakChapter": False,
    }
    record.update(overrides)
    return record


@pytest.fixture
def chapter_factory() -> Callable[..., dict[str, Any]]:
    return make_chapter


@pytest.fixture
def fake_redis_factory() -> Callable[..., FakeRedis]:
    return FakeRedis
