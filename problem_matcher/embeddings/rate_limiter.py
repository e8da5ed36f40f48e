"""
Rate limiting for the embedding provider.

Sandi Metz Principles:
- Single Responsibility: Pace provider requests
- Small methods: One wait condition per method
- Dependency Injection: Configuration and clock injected
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque

from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""

    requests_per_minute: int
    min_interval: float = 0.05
    window_seconds: float = 60.0


@dataclass
class RateLimitStats:
    """Counters for time spent waiting."""

    requests: int = 0
    window_waits: int = 0
    spacing_waits: int = 0
    total_wait_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "requests": self.requests,
            "window_waits": self.window_waits,
            "spacing_waits": self.spacing_waits,
            "total_wait_seconds": round(self.total_wait_seconds, 3),
        }


class RateLimiter:
    """
    Sliding-window limiter with a minimum gap between calls.

    One instance is shared by every concurrent embed call. Callers queue
    on the lock and sleep; nothing is ever rejected.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limit configuration
            clock: Monotonic time source in seconds
        """
        self._config = config
        self._clock = clock
        self._sent: Deque[float] = deque()
        self._last_sent: float | None = None
        self._stats = RateLimitStats()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request may be sent, then claim the slot."""
        async with self._lock:
            await self._wait_for_window()
            await self._wait_for_spacing()
            now = self._clock()
            self._sent.append(now)
            self._last_sent = now
            self._stats.requests += 1

    async def _wait_for_window(self) -> None:
        """Sleep until the oldest request leaves the window, if the budget is spent."""
        self._expire()
        if len(self._sent) < self._config.requests_per_minute:
            return

        delay = max(0.0, self._sent[0] + self._config.window_seconds - self._clock())
        self._stats.window_waits += 1
        logger.info(
            "Provider request budget spent, waiting",
            wait_seconds=round(delay, 2),
            in_window=len(self._sent),
        )
        await self._sleep(delay)
        self._expire()

    async def _wait_for_spacing(self) -> None:
        """Keep at least min_interval between consecutive requests."""
        if self._last_sent is None:
            return

        delay = self._last_sent + self._config.min_interval - self._clock()
        if delay > 0:
            self._stats.spacing_waits += 1
            await self._sleep(delay)

    async def _sleep(self, seconds: float) -> None:
        """
        Sleep and account the wait in stats.

        Args:
            seconds: Time to wait
        """
        self._stats.total_wait_seconds += seconds
        await asyncio.sleep(seconds)

    def _expire(self) -> None:
        """Drop timestamps that left the window."""
        cutoff = self._clock() - self._config.window_seconds
        while self._sent and self._sent[0] <= cutoff:
            self._sent.popleft()

    def get_remaining_requests(self) -> int:
        """
        Get requests still allowed in the current window.

        Returns:
            Number of remaining requests
        """
        self._expire()
        return max(0, self._config.requests_per_minute - len(self._sent))

    def get_stats(self) -> dict:
        """
        Get limiter statistics.

        Returns:
            Dictionary with request and wait counters
        """
        return {**self._stats.to_dict(), "remaining": self.get_remaining_requests()}
