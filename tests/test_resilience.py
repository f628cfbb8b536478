#!/usr/bin/env python3
"""Tests for the retry policy.

Tests cover:
    - Backoff schedule (base, multiplier, cap)
    - retry_async success, exhaustion and non-retryable errors
    - Retry callbacks and injected sleep
"""
from unittest.mock import AsyncMock

import pytest

from src.chorus.core.exceptions import (
    BackendConnectionError,
    BackendEmptyResponseError,
    ResponseRejectedError,
    ValidationError,
)
from src.chorus.core.resilience import (
    DEFAULT_RETRYABLE_EXCEPTIONS,
    RetryPolicy,
    retry_async,
)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


# ============================================
# Retry Policy
# ============================================

class TestRetryPolicy:
    """Test the backoff schedule."""

    def test_default_schedule(self):
        """Default policy waits 2s then 4s across three attempts."""
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(2) == 4.0
        assert policy.has_attempts_left(2)
        assert not policy.has_attempts_left(3)

    def test_custom_multiplier(self):
        policy = RetryPolicy(max_attempts=4, backoff_base=0.5, backoff_multiplier=3.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.5, 4.5]

    def test_delay_capped(self):
        policy = RetryPolicy(max_attempts=10, backoff_base=2.0, max_delay=10.0)
        assert policy.delay_for(8) == 10.0

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_negative_base(self):
        with pytest.raises(ValueError):
            RetryPolicy(backoff_base=-1.0)

    def test_retryable_defaults(self):
        assert issubclass(BackendEmptyResponseError, DEFAULT_RETRYABLE_EXCEPTIONS)
        assert issubclass(ResponseRejectedError, DEFAULT_RETRYABLE_EXCEPTIONS)
        assert not issubclass(ValidationError, DEFAULT_RETRYABLE_EXCEPTIONS)


# ============================================
# retry_async
# ============================================

class TestRetryAsync:
    """Test retry_async behavior."""

    @pytest.mark.asyncio
    async def test_succeeds_on_first_attempt(self):
        func = AsyncMock(return_value="ok")
        sleep = RecordingSleep()

        result = await retry_async(func, "a", policy=RetryPolicy(), sleep=sleep, key="v")

        assert result == "ok"
        func.assert_awaited_once_with("a", key="v")
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        func = AsyncMock(side_effect=[
            BackendConnectionError("refused"),
            BackendEmptyResponseError(),
            "ok",
        ])
        sleep = RecordingSleep()

        result = await retry_async(func, policy=RetryPolicy(), sleep=sleep)

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhausts_attempts(self):
        """The last retryable exception propagates after max_attempts."""
        last = BackendEmptyResponseError("third")
        func = AsyncMock(side_effect=[
            BackendEmptyResponseError("first"),
            BackendEmptyResponseError("second"),
            last,
        ])

        with pytest.raises(BackendEmptyResponseError) as exc_info:
            await retry_async(func, policy=RetryPolicy(), sleep=RecordingSleep())

        assert exc_info.value is last
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self):
        func = AsyncMock(side_effect=ValidationError("bad input"))
        sleep = RecordingSleep()

        with pytest.raises(ValidationError):
            await retry_async(func, policy=RetryPolicy(), sleep=sleep)

        assert func.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_retryable_exceptions(self):
        func = AsyncMock(side_effect=[KeyError("x"), "ok"])

        result = await retry_async(
            func,
            policy=RetryPolicy(backoff_base=0.1),
            retryable_exceptions=(KeyError,),
            sleep=RecordingSleep(),
        )
        assert result == "ok"

    @pytest.mark.asyncio
    async def test_retry_callback_called(self):
        func = AsyncMock(side_effect=[
            BackendConnectionError("one"),
            BackendConnectionError("two"),
            "ok",
        ])
        seen = []

        await retry_async(
            func,
            policy=RetryPolicy(),
            sleep=RecordingSleep(),
            on_retry=lambda e, attempt: seen.append((str(e), attempt)),
        )

        assert seen == [("one", 1), ("two", 2)]

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self):
        func = AsyncMock(side_effect=BackendEmptyResponseError())
        sleep = RecordingSleep()

        with pytest.raises(BackendEmptyResponseError):
            await retry_async(func, policy=RetryPolicy(max_attempts=1), sleep=sleep)

        assert sleep.delays == []
