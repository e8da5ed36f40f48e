"""
Tests for the embedding retry handler.
"""

from time import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)

from problem_matcher.embeddings.retry import RetryConfig, RetryHandler

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


class TestRetryHandler:
    """Test retry handler functionality."""

    @pytest.fixture
    def retry_handler(self) -> RetryHandler:
        """Create retry handler with short delays."""
        return RetryHandler(
            RetryConfig(max_retries=2, initial_delay=0.01, max_delay=1.0)
        )

    def test_max_attempts_counts_first_call(self, retry_handler: RetryHandler) -> None:
        """Test attempts are retries plus one."""
        assert retry_handler.max_attempts == 3

    @pytest.mark.asyncio
    async def test_execute_success_first_attempt(
        self, retry_handler: RetryHandler
    ) -> None:
        """Test successful execution on first attempt."""
        func = AsyncMock(return_value="success")

        assert await retry_handler.execute(func) == "success"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_server_errors(
        self, retry_handler: RetryHandler, openai_error
    ) -> None:
        """Test 5xx errors are retried."""
        func = AsyncMock(
            side_effect=[openai_error(InternalServerError, 503), "success"]
        )

        assert await retry_handler.execute(func) == "success"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausts_retries(self, retry_handler: RetryHandler) -> None:
        """Test persistent failure is raised after max_retries retries."""
        func = AsyncMock(side_effect=APITimeoutError(request=REQUEST))

        with pytest.raises(APITimeoutError):
            await retry_handler.execute(func)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, retry_handler: RetryHandler) -> None:
        """Test connection errors are retried."""
        func = AsyncMock(side_effect=[APIConnectionError(request=REQUEST), "ok"])

        assert await retry_handler.execute(func) == "ok"

    @pytest.mark.asyncio
    async def test_auth_errors_not_retried(
        self, retry_handler: RetryHandler, openai_error
    ) -> None:
        """Test 401 propagates immediately."""
        func = AsyncMock(side_effect=openai_error(AuthenticationError, 401))

        with pytest.raises(AuthenticationError):
            await retry_handler.execute(func)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_honors_retry_after(self, openai_error) -> None:
        """Test a 429 with Retry-After: 1 waits about a second, then succeeds."""
        handler = RetryHandler(RetryConfig(max_retries=3, initial_delay=10.0))
        func = AsyncMock(
            side_effect=[
                openai_error(RateLimitError, 429, headers={"retry-after": "1"}),
                "success",
            ]
        )

        start = time()
        result = await handler.execute(func)
        elapsed = time() - start

        assert result == "success"
        assert func.await_count == 2
        assert 0.9 <= elapsed < 2.0

    @pytest.mark.asyncio
    async def test_retry_after_ms_preferred(self, openai_error) -> None:
        """Test millisecond hint wins over seconds hint."""
        handler = RetryHandler(RetryConfig(max_retries=1, initial_delay=10.0))
        error = openai_error(
            RateLimitError, 429, headers={"retry-after-ms": "250", "retry-after": "5"}
        )
        func = AsyncMock(side_effect=[error, "ok"])

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await handler.execute(func)

        mock_sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_retry_after_capped(self, openai_error) -> None:
        """Test a huge hint is capped at max_delay."""
        handler = RetryHandler(RetryConfig(max_retries=1, max_delay=5.0))
        func = AsyncMock(
            side_effect=[
                openai_error(RateLimitError, 429, headers={"retry-after": "600"}),
                "ok",
            ]
        )

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await handler.execute(func)

        mock_sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_exponential_backoff(self, openai_error) -> None:
        """Test delays double without a hint."""
        handler = RetryHandler(
            RetryConfig(max_retries=3, initial_delay=1.0, max_delay=60.0)
        )
        error = openai_error(InternalServerError, 500)
        func = AsyncMock(side_effect=[error, error, error, "ok"])

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await handler.execute(func)

        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert delays == [1.0, 2.0, 4.0]

    def test_calculate_delay_capped(self) -> None:
        """Test backoff never exceeds max_delay."""
        handler = RetryHandler(
            RetryConfig(max_retries=10, initial_delay=1.0, max_delay=60.0)
        )
        assert handler._calculate_delay(10) == 60.0
