"""
Tests for the embedding rate limiter.
"""

from unittest.mock import AsyncMock, patch

import pytest

from problem_matcher.embeddings.rate_limiter import RateLimitConfig, RateLimiter


class TestRateLimiter:
    """Test rate limiter functionality."""

    @pytest.fixture
    def rate_limiter(self, clock) -> RateLimiter:
        """Create rate limiter without spacing."""
        return RateLimiter(
            RateLimitConfig(requests_per_minute=60, min_interval=0.0), clock=clock
        )

    @pytest.mark.asyncio
    async def test_acquire_under_limit_does_not_sleep(self, rate_limiter) -> None:
        """Test that acquire under the limit returns immediately."""
        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await rate_limiter.acquire()

        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_remaining_requests(self, rate_limiter) -> None:
        """Test remaining budget shrinks per request."""
        assert rate_limiter.get_remaining_requests() == 60

        await rate_limiter.acquire()
        await rate_limiter.acquire()
        assert rate_limiter.get_remaining_requests() == 58

    @pytest.mark.asyncio
    async def test_waits_when_window_full(self, clock) -> None:
        """Test caller sleeps instead of failing when the budget is spent."""
        limiter = RateLimiter(
            RateLimitConfig(requests_per_minute=2, min_interval=0.0), clock=clock
        )
        await limiter.acquire()
        clock.advance(10)
        await limiter.acquire()

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await limiter.acquire()

        mock_sleep.assert_awaited_once_with(50.0)
        assert limiter.get_stats()["window_waits"] == 1

    @pytest.mark.asyncio
    async def test_enforces_min_interval(self, clock) -> None:
        """Test back-to-back calls are spaced."""
        limiter = RateLimiter(
            RateLimitConfig(requests_per_minute=1000, min_interval=0.5), clock=clock
        )
        await limiter.acquire()
        clock.advance(0.2)

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await limiter.acquire()

        assert mock_sleep.await_args.args[0] == pytest.approx(0.3)
        assert limiter.get_stats()["spacing_waits"] == 1

    @pytest.mark.asyncio
    async def test_no_spacing_after_interval(self, clock) -> None:
        """Test calls further apart than the interval are not delayed."""
        limiter = RateLimiter(
            RateLimitConfig(requests_per_minute=1000, min_interval=0.5), clock=clock
        )
        await limiter.acquire()
        clock.advance(1.0)

        with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await limiter.acquire()

        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_old_requests_leave_window(self, rate_limiter, clock) -> None:
        """Test requests older than a minute stop counting."""
        await rate_limiter.acquire()
        await rate_limiter.acquire()

        clock.advance(61)
        assert rate_limiter.get_remaining_requests() == 60

    @pytest.mark.asyncio
    async def test_get_stats(self, rate_limiter) -> None:
        """Test counters."""
        await rate_limiter.acquire()
        stats = rate_limiter.get_stats()

        assert stats["requests"] == 1
        assert stats["remaining"] == 59
        assert stats["total_wait_seconds"] == 0.0
