"""Tests for the Redis cache store and its failure handling."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from app.adapters.cache.redis_store import RedisCacheStore
from app.adapters.redis_connection import RedisConnection


@pytest.mark.asyncio
async def test_round_trips_json_payloads_with_expiry(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection, namespace="dash:")

    assert await store.set("dash:chapter:1", {"success": True, "n": 1}, 60) is True

    assert fake_redis.data["dash:chapter:1"] == '{"success": true, "n": 1}'
    assert "dash:chapter:1" in fake_redis.expires_at
    assert await store.get("dash:chapter:1") == {"success": True, "n": 1}


@pytest.mark.asyncio
async def test_missing_key_is_a_miss(redis_connection) -> None:
    store = RedisCacheStore(redis_connection)

    assert await store.get("nope") is None


@pytest.mark.asyncio
async def test_undecodable_payload_is_a_miss(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection)
    fake_redis.data["broken"] = "{not json"

    assert await store.get("broken") is None
    # Bad data does not mean the store is down
    assert store.available is True


@pytest.mark.asyncio
async def test_delete_pattern_scans_and_deletes_matches(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection, namespace="dash:")
    await store.set("dash:chapters:a", {"v": 1}, 60)
    await store.set("dash:chapters:b", {"v": 2}, 60)
    await store.set("dash:chapter:x", {"v": 3}, 60)

    assert await store.delete_pattern("dash:chapters:*") == 2
    assert list(fake_redis.data) == ["dash:chapter:x"]
    assert "scan_iter" in fake_redis.calls


@pytest.mark.asyncio
async def test_clear_keeps_keys_outside_namespace(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection, namespace="dash:")
    await store.set("dash:chapters:a", {"v": 1}, 60)
    fake_redis.data["rl:10.0.0.1"] = "3"

    assert await store.clear() is True

    assert fake_redis.data == {"rl:10.0.0.1": "3"}
    assert "flushdb" not in fake_redis.calls


@pytest.mark.asyncio
async def test_clear_without_namespace_flushes_database(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection)
    fake_redis.data["anything"] = "1"

    assert await store.clear() is True
    assert fake_redis.data == {}


@pytest.mark.asyncio
async def test_connection_errors_degrade_to_misses_and_mark_unavailable(
    fake_redis, redis_connection
) -> None:
    store = RedisCacheStore(redis_connection)
    await store.set("k", {"v": 1}, 60)

    fake_redis.fail_with = RedisConnectionError("connection reset")

    assert await store.get("k") is None
    assert store.available is False

    # Subsequent calls short-circuit without touching the client
    fake_redis.calls.clear()
    assert await store.set("k", {"v": 2}, 60) is False
    assert await store.delete_pattern("*") == 0
    assert fake_redis.calls == []


@pytest.mark.asyncio
async def test_command_errors_do_not_mark_unavailable(fake_redis, redis_connection) -> None:
    store = RedisCacheStore(redis_connection)
    await store.get("warm-up")

    fake_redis.fail_with = ResponseError("WRONGTYPE")

    assert await store.get("k") is None
    assert store.available is True


@pytest.mark.asyncio
async def test_unreachable_store_never_raises(fake_redis_factory) -> None:
    down = fake_redis_factory()
    down.fail_with = RedisConnectionError("refused")
    store = RedisCacheStore(RedisConnection(lambda: down))

    assert await store.get("k") is None
    assert await store.set("k", {"v": 1}, 60) is False
    assert await store.delete("k") is False
    assert await store.delete_pattern("*") == 0
    assert await store.clear() is False
