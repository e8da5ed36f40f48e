"""
In-flight request deduplication.

Concurrent identical match requests share one computation.

Sandi Metz Principles:
- Single Responsibility: Request deduplication
- Async-safe: Registry guarded by an asyncio lock
- Isolation: Each waiter receives its own copy of the result
"""

import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PendingRequest:
    """A request currently being computed."""

    key: str
    created_at: float
    future: asyncio.Future
    waiters: int = 0


@dataclass
class DeduplicationStats:
    """Statistics for deduplication."""

    total_requests: int = 0
    deduplicated: int = 0
    unique: int = 0

    @property
    def dedup_rate(self) -> float:
        """Get deduplication rate."""
        if self.total_requests == 0:
            return 0.0
        return self.deduplicated / self.total_requests

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "deduplicated": self.deduplicated,
            "unique": self.unique,
            "dedup_rate": round(self.dedup_rate, 4),
        }


class InFlightRequests:
    """
    Registry of requests being computed, keyed by cache key.

    The first caller for a key becomes the leader and computes the
    result; callers arriving before it finishes wait for the leader's
    outcome instead of starting their own.
    """

    def __init__(self):
        """Initialize registry."""
        self._pending: Dict[str, PendingRequest] = {}
        self._lock = asyncio.Lock()
        self._stats = DeduplicationStats()

    async def get_or_create(self, key: str) -> tuple[bool, asyncio.Future]:
        """
        Get existing pending request or register a new one.

        Args:
            key: Request key

        Returns:
            Tuple of (is_duplicate, future)
        """
        async with self._lock:
            self._stats.total_requests += 1

            pending = self._pending.get(key)
            if pending is not None and not pending.future.done():
                pending.waiters += 1
                self._stats.deduplicated += 1
                logger.debug("Request deduplicated", key=key[:100])
                return (True, pending.future)

            self._stats.unique += 1
            future: asyncio.Future = asyncio.get_running_loop().create_future()
            self._pending[key] = PendingRequest(
                key=key, created_at=time.time(), future=future
            )
            return (False, future)

    async def complete(
        self, key: str, result: Any = None, error: Optional[Exception] = None
    ) -> None:
        """
        Publish the leader's outcome to waiting callers.

        Args:
            key: Request key
            result: Computed result
            error: Error if the computation failed
        """
        async with self._lock:
            pending = self._pending.pop(key, None)

        if pending is None or pending.future.done():
            return

        if error is None:
            pending.future.set_result(result)
        elif pending.waiters:
            pending.future.set_exception(error)
        else:
            pending.future.cancel()

    def abandon(self, key: str) -> None:
        """Drop a request whose leader was cancelled; waiters are cancelled too."""
        pending = self._pending.pop(key, None)
        if pending is not None and not pending.future.done():
            pending.future.cancel()

    async def run(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Compute a result once per key among concurrent callers.

        Args:
            key: Request key
            compute: Coroutine factory producing the result

        Returns:
            The leader's result (a deep copy for waiting callers)
        """
        is_duplicate, future = await self.get_or_create(key)

        if is_duplicate:
            logger.debug("Waiting for in-flight result", key=key[:100])
            result = await asyncio.shield(future)
            return copy.deepcopy(result)

        try:
            result = await compute()
        except asyncio.CancelledError:
            self.abandon(key)
            raise
        except Exception as e:
            await self.complete(key, error=e)
            raise

        await self.complete(key, result=result)
        return result

    @property
    def pending_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._pending)

    @property
    def stats(self) -> DeduplicationStats:
        """Get deduplication statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = DeduplicationStats()
