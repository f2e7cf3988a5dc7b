"""Unit tests for in-memory rate limiter adapter."""

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryRateLimiter


@pytest.mark.asyncio
async def test_allows_up_to_limit_with_decreasing_remaining() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryRateLimiter(points=3, duration_seconds=60, clock=clock)

    results = [await limiter.consume("k") for _ in range(3)]

    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]
    assert results[0].reset_at == 1060.0


@pytest.mark.asyncio
async def test_blocks_for_block_duration_after_exhaustion() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryRateLimiter(
        points=5,
        duration_seconds=60,
        block_duration_seconds=60,
        clock=clock,
    )

    for _ in range(5):
        assert (await limiter.consume("k")).allowed is True

    blocked = await limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 60

    clock.return_value = 1030.4
    still_blocked = await limiter.consume("k")
    assert still_blocked.allowed is False
    assert still_blocked.retry_after_seconds == 30

    clock.return_value = 1060.0
    reopened = await limiter.consume("k")
    assert reopened.allowed is True
    assert reopened.remaining == 4


@pytest.mark.asyncio
async def test_block_outlives_window_rollover() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryRateLimiter(
        points=1,
        duration_seconds=10,
        block_duration_seconds=60,
        clock=clock,
    )

    assert (await limiter.consume("k")).allowed is True
    assert (await limiter.consume("k")).allowed is False

    # The window has rolled over, the block has not
    clock.return_value = 1020.0
    assert (await limiter.consume("k")).allowed is False


@pytest.mark.asyncio
async def test_without_block_duration_resets_on_new_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryRateLimiter(points=1, duration_seconds=10, clock=clock)

    assert (await limiter.consume("k")).allowed is True
    denied = await limiter.consume("k")
    assert denied.allowed is False
    assert denied.retry_after_seconds == 10

    clock.return_value = 1010.0
    assert (await limiter.consume("k")).allowed is True


@pytest.mark.asyncio
async def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryRateLimiter(points=1, duration_seconds=60, clock=clock)

    assert (await limiter.consume("k1")).allowed is True
    assert (await limiter.consume("k1")).allowed is False

    assert (await limiter.consume("k2")).allowed is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"points": 0, "duration_seconds": 60},
        {"points": 1, "duration_seconds": 0},
        {"points": 1, "duration_seconds": 60, "block_duration_seconds": -1},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryRateLimiter(**kwargs)


@pytest.mark.asyncio
async def test_invalid_consume_args() -> None:
    limiter = InMemoryRateLimiter(points=1, duration_seconds=60)

    with pytest.raises(ValueError):
        await limiter.consume("")

    with pytest.raises(ValueError):
        await limiter.consume("k", cost=0)
