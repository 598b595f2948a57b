"""
Unit tests for retry helpers.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared.retry import RetryConfig, RetryError, _calculate_delay, retry_on_exception


class TestRetryOnException:
    """Test cases for retry_on_exception."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Matching exceptions are retried until success."""
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        func.__name__ = "fetch"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, base_delay=0, jitter=False))(func)

        assert await wrapped() == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_retry_error(self):
        """The last exception is kept on RetryError."""
        error = ConnectionError("down")
        func = AsyncMock(side_effect=error)
        func.__name__ = "fetch"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=2, base_delay=0, jitter=False))(func)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert exc_info.value.last_exception is error
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_other_exceptions_propagate_immediately(self):
        """Exceptions outside the tuple are not retried."""
        func = AsyncMock(side_effect=KeyError("missing"))
        func.__name__ = "fetch"
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(base_delay=0))(func)

        with pytest.raises(KeyError):
            await wrapped()

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        """The computed backoff is awaited between attempts."""
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        func.__name__ = "fetch"
        config = RetryConfig(max_attempts=3, base_delay=0.5, jitter=False)
        wrapped = retry_on_exception((ConnectionError,), config)(func)

        with patch('shared.retry.asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            await wrapped()

        assert [call.args[0] for call in mock_sleep.await_args_list] == [0.5, 1.0]

    def test_single_attempt_minimum(self):
        """max_attempts is at least one."""
        assert RetryConfig(max_attempts=0).max_attempts == 1


class TestCalculateDelay:
    """Test cases for backoff strategies."""

    def test_exponential(self):
        config = RetryConfig(base_delay=0.5, max_delay=5.0, jitter=False)

        assert [_calculate_delay(attempt, config) for attempt in (1, 2, 3, 5)] == [0.5, 1.0, 2.0, 5.0]

    def test_linear(self):
        config = RetryConfig(base_delay=1.0, jitter=False, backoff_strategy="linear")

        assert [_calculate_delay(attempt, config) for attempt in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_fixed(self):
        config = RetryConfig(base_delay=0.25, jitter=False, backoff_strategy="fixed")

        assert _calculate_delay(4, config) == 0.25

    def test_jitter_stays_within_ten_percent(self):
        config = RetryConfig(base_delay=1.0, jitter=True)

        for _ in range(20):
            assert 0.9 <= _calculate_delay(1, config) <= 1.1
