"""Tests for retry mechanism with exponential backoff."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from briefgate.app.providers.retry import RetryPolicy, call_with_retry, with_retry


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.openai.test/v1/images/generations")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))


class TestRetryPolicy:
    """Test RetryPolicy configuration."""

    def test_default_values(self):
        """Upstream calls cost money: one retry by default."""
        policy = RetryPolicy()

        assert policy.max_retries == 1
        assert policy.base_delay == 0.5
        assert policy.max_delay == 5.0
        assert policy.exponential_base == 2.0
        assert policy.retryable_exceptions == (httpx.HTTPStatusError, httpx.NetworkError)

    def test_calculate_delay(self):
        policy = RetryPolicy(base_delay=0.5, max_delay=10.0, exponential_base=2.0)

        assert policy.calculate_delay(0) == 0.5
        assert policy.calculate_delay(1) == 1.0
        assert policy.calculate_delay(2) == 2.0

    def test_calculate_delay_capped_at_max(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
        assert policy.calculate_delay(10) == 5.0

    @pytest.mark.parametrize(
        ("exception", "expected"),
        [
            (status_error(500), True),
            (status_error(503), True),
            (status_error(400), False),
            (status_error(429), False),
            (httpx.ConnectError("refused"), True),
            (httpx.ReadTimeout("slow"), False),
            (httpx.ConnectTimeout("slow"), False),
            (ValueError("bad"), False),
        ],
    )
    def test_is_retryable(self, exception, expected):
        assert RetryPolicy().is_retryable(exception) is expected


class TestWithRetry:
    """Test the retry decorator."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        func.__name__ = "func"

        result = await with_retry(RetryPolicy(base_delay=0.0))(func)()

        assert result == "ok"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[status_error(502), "ok"])
        func.__name__ = "func"

        with patch("briefgate.app.providers.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await with_retry(RetryPolicy(max_retries=1, base_delay=0.5))(func)()

        assert result == "ok"
        assert func.await_count == 2
        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        func = AsyncMock(side_effect=httpx.ConnectError("refused"))
        func.__name__ = "func"

        with patch("briefgate.app.providers.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(httpx.ConnectError):
                await with_retry(RetryPolicy(max_retries=2))(func)()

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        func = AsyncMock(side_effect=status_error(401))
        func.__name__ = "func"

        with pytest.raises(httpx.HTTPStatusError):
            await with_retry(RetryPolicy(max_retries=3))(func)()

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_never_retried(self):
        func = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        func.__name__ = "func"

        with pytest.raises(httpx.ReadTimeout):
            await with_retry(RetryPolicy(max_retries=3))(func)()

        assert func.await_count == 1


class TestCallWithRetry:
    """Test the functional form used by providers."""

    @pytest.mark.asyncio
    async def test_passes_arguments_through(self):
        func = AsyncMock(return_value={"data": []})

        result = await call_with_retry(RetryPolicy(), func, "/images/generations", {"prompt": "p"})

        assert result == {"data": []}
        func.assert_awaited_once_with("/images/generations", {"prompt": "p"})

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        func = AsyncMock(side_effect=status_error(500))

        with pytest.raises(httpx.HTTPStatusError):
            await call_with_retry(RetryPolicy(max_retries=0), func)

        assert func.await_count == 1
