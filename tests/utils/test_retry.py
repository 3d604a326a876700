# tests/utils/test_retry.py

import asyncio
from unittest.mock import AsyncMock

import pytest

from costcompass.core.exceptions import MetricsUnavailable
from costcompass.utils.retry import call_with_retry


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


async def test_returns_first_success_without_sleeping():
    sleep = RecordingSleep()
    func = AsyncMock(return_value=42)

    assert await call_with_retry(func, sleep=sleep) == 42
    assert sleep.delays == []


async def test_backoff_grows_and_is_capped():
    sleep = RecordingSleep()
    func = AsyncMock(side_effect=[MetricsUnavailable("a"), MetricsUnavailable("b"), MetricsUnavailable("c"), "ok"])

    result = await call_with_retry(
        func, max_attempts=4, initial_delay=3.0, max_delay=10.0, exceptions=(MetricsUnavailable,), sleep=sleep
    )

    assert result == "ok"
    assert sleep.delays == [3.0, 6.0, 10.0]


async def test_last_error_is_raised_after_all_attempts():
    func = AsyncMock(side_effect=MetricsUnavailable("down"))

    with pytest.raises(MetricsUnavailable, match="down"):
        await call_with_retry(func, max_attempts=3, exceptions=(MetricsUnavailable,), sleep=RecordingSleep())

    assert func.await_count == 3


async def test_unlisted_errors_are_not_retried():
    func = AsyncMock(side_effect=KeyError("bug"))

    with pytest.raises(KeyError):
        await call_with_retry(func, max_attempts=3, exceptions=(MetricsUnavailable,), sleep=RecordingSleep())

    assert func.await_count == 1


async def test_timeout_counts_as_failed_attempt():
    calls = []

    async def slow():
        calls.append(1)
        await asyncio.sleep(10)

    with pytest.raises(TimeoutError):
        await call_with_retry(slow, max_attempts=2, timeout=0.01, sleep=RecordingSleep())

    assert len(calls) == 2
