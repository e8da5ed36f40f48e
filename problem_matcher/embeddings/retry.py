"""
Retry logic for the embedding provider.

Sandi Metz Principles:
- Single Responsibility: Manage retry logic
- Small methods: Each method < 10 lines
- Dependency Injection: Configuration injected
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from openai import (
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Retry configuration."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0


class RetryHandler:
    """
    Exponential backoff retry handler.

    Retries rate-limit, server, timeout and connection failures. A
    provider ``Retry-After`` hint replaces the computed delay.
    """

    RETRYABLE_EXCEPTIONS = (
        RateLimitError,
        InternalServerError,
        APITimeoutError,
        APIConnectionError,
    )

    def __init__(self, config: RetryConfig | None = None):
        """
        Initialize retry handler.

        Args:
            config: Retry configuration (uses defaults if None)
        """
        self._config = config or RetryConfig()

    @property
    def max_attempts(self) -> int:
        """Total attempts: the first call plus retries."""
        return self._config.max_retries + 1

    async def execute(self, func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Execute function with retry logic.

        Args:
            func: Async function to execute

        Returns:
            Function result

        Raises:
            Exception: Last retryable error once retries are exhausted, or
                any non-retryable error immediately
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func()
            except self.RETRYABLE_EXCEPTIONS as e:
                if attempt == self.max_attempts:
                    logger.error(
                        "All retry attempts failed", attempts=attempt, error=str(e)
                    )
                    raise

                delay = self._delay_for(e, attempt)
                logger.warning(
                    "Embedding call failed, retrying",
                    attempt=attempt,
                    delay_seconds=round(delay, 2),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)

        raise RuntimeError("Retry loop exited without a result")

    def _delay_for(self, error: Exception, attempt: int) -> float:
        """
        Pick the delay before the next attempt.

        Args:
            error: Error raised by the failed attempt
            attempt: Failed attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        hint = self._retry_after(error)
        if hint is not None:
            return min(hint, self._config.max_delay)
        return self._calculate_delay(attempt)

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for attempt using exponential backoff.

        Args:
            attempt: Current attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = self._config.initial_delay * (
            self._config.exponential_base ** (attempt - 1)
        )
        return min(delay, self._config.max_delay)

    @staticmethod
    def _retry_after(error: Exception) -> Optional[float]:
        """
        Read a ``Retry-After`` hint from a rate-limit response.

        Returns:
            Seconds to wait, or None when absent or unparseable
        """
        if not isinstance(error, RateLimitError):
            return None

        headers = error.response.headers if error.response is not None else {}
        retry_after_ms = headers.get("retry-after-ms")
        retry_after = headers.get("retry-after")

        try:
            if retry_after_ms is not None:
                return max(0.0, float(retry_after_ms) / 1000)
            if retry_after is not None:
                return max(0.0, float(retry_after))
        except ValueError:
            logger.debug("Unparseable Retry-After header", value=retry_after)
        return None
