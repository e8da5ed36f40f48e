"""
In-memory TTL cache.

Backs every remote lookup: match responses, enriched candidate lists
and provider embeddings.

Sandi Metz Principles:
- Single Responsibility: Expiring key/value storage
- Small methods: Each operation isolated
- Dependency Injection: Clock injected for deterministic expiry
"""

import asyncio
import copy
import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from problem_matcher.config import config
from problem_matcher.exceptions import InvalidInputError
from problem_matcher.models.cache_entry import CacheEntry, CacheStats
from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


class TTLCache:
    """
    Thread-safe key/value cache with per-entry expiry.

    Values are deep-copied on the way in and out, so callers can never
    mutate cached state. When full, the entry with the oldest creation
    time is evicted. Access metadata is tracked for diagnostics only;
    eviction is deliberately not LRU.
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cache.

        Args:
            max_entries: Capacity (defaults to config.cache_max_entries)
            default_ttl: TTL in seconds when ``set`` gets none
            clock: Time source returning epoch seconds

        Raises:
            InvalidInputError: Capacity below one entry
        """
        self._max_entries = (
            max_entries if max_entries is not None else config.cache_max_entries
        )
        if self._max_entries < 1:
            raise InvalidInputError(
                f"Cache capacity must be at least 1, got {self._max_entries}"
            )
        self._default_ttl = (
            default_ttl if default_ttl is not None else config.cache_default_ttl_seconds
        )
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = CacheStats()
        self._lock = threading.RLock()
        self._cleanup_task: Optional[asyncio.Task] = None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """
        Store a copy of value under key.

        Args:
            key: Cache key (must be non-empty)
            value: Value to store
            ttl: Time-to-live in seconds (uses default if None)

        Returns:
            True if stored, False for an empty key or an uncopyable value
        """
        if not key:
            logger.warning("Cache set rejected empty key")
            return False

        final_ttl = self._default_ttl if ttl is None else max(0.0, ttl)

        try:
            stored = copy.deepcopy(value)
            size = self._estimate_size(value)
        except (TypeError, ValueError, AttributeError, copy.Error, RecursionError) as e:
            logger.error("Cache set failed to copy value", key=key, error=str(e))
            return False

        with self._lock:
            now = self._clock()
            if len(self._entries) >= self._max_entries and key not in self._entries:
                self._evict_oldest()

            self._entries[key] = CacheEntry(
                value=stored,
                created_at=now,
                expires_at=now + final_ttl,
                last_accessed_at=now,
                size_estimate_bytes=size,
            )
            self._stats.sets += 1

        logger.debug("Cache set", key=key, ttl=final_ttl)
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a copy of the cached value.

        Args:
            key: Cache key
            default: Returned on miss

        Returns:
            Copy of cached value, or default if absent or expired
        """
        if not key:
            return default

        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._stats.misses += 1
                return default

            entry.touch(self._clock())
            self._stats.hits += 1
            return copy.deepcopy(entry.value)

    def has(self, key: str) -> bool:
        """
        Check if key holds a live entry.

        Expired entries are removed; access metadata is left untouched.
        """
        if not key:
            return False

        with self._lock:
            return self._live_entry(key) is not None

    def get_with_metadata(self, key: str) -> Optional[dict]:
        """
        Get a copy of the value together with its entry metadata.

        Counts as a read for access metadata but not for hit/miss stats.

        Returns:
            Dict with ``value`` and ``metadata`` keys, or None
        """
        with self._lock:
            entry = self._live_entry(key) if key else None
            if entry is None:
                return None

            now = self._clock()
            entry.touch(now)
            return {
                "value": copy.deepcopy(entry.value),
                "metadata": {
                    "created_at": entry.created_at,
                    "expires_at": entry.expires_at,
                    "access_count": entry.access_count,
                    "last_accessed_at": entry.last_accessed_at,
                    "size_estimate_bytes": entry.size_estimate_bytes,
                    "ttl_remaining": entry.ttl_remaining(now),
                },
            }

    def set_with_expiration(self, key: str, value: Any, expires_at: float) -> bool:
        """Store value so it expires at an absolute timestamp."""
        return self.set(key, value, ttl=max(0.0, expires_at - self._clock()))

    def extend(self, key: str, additional_ttl: float) -> bool:
        """
        Push back the expiry of a live entry.

        Args:
            key: Cache key
            additional_ttl: Seconds to add

        Returns:
            True if the entry exists and was extended
        """
        with self._lock:
            entry = self._live_entry(key) if key else None
            if entry is None:
                return False

            entry.expires_at = max(entry.created_at, entry.expires_at + additional_ttl)
            return True

    def delete(self, key: str) -> bool:
        """
        Delete cache entry.

        Returns:
            True if an entry was removed
        """
        if not key:
            return False

        with self._lock:
            removed = self._entries.pop(key, None) is not None

        if removed:
            logger.debug("Cache delete", key=key)
        return removed

    def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()

        logger.info("Cache cleared", entries_removed=removed)
        return removed

    def clear_by_prefix(self, prefix: str) -> int:
        """
        Remove entries whose key starts with prefix.

        Returns:
            Number of entries removed
        """
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]

        logger.info("Cache cleared by prefix", prefix=prefix, entries_removed=len(keys))
        return len(keys)

    def cleanup(self) -> int:
        """
        Sweep expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._stats.cleanups += 1

        if expired:
            logger.debug("Cache cleanup", entries_removed=len(expired))
        return len(expired)

    def keys(self) -> List[str]:
        """Get all keys, including ones not yet swept."""
        with self._lock:
            return list(self._entries)

    def keys_by_prefix(self, prefix: str) -> List[str]:
        """Get all keys starting with prefix."""
        return [key for key in self.keys() if key.startswith(prefix)]

    @property
    def size(self) -> int:
        """Get current number of entries."""
        return len(self._entries)

    @property
    def max_entries(self) -> int:
        """Get capacity."""
        return self._max_entries

    @property
    def default_ttl(self) -> float:
        """Get default TTL in seconds."""
        return self._default_ttl

    def memory_usage(self) -> dict:
        """
        Get memory usage estimate.

        Returns:
            Dictionary with entry count and estimated bytes
        """
        with self._lock:
            total = sum(entry.size_estimate_bytes for entry in self._entries.values())
            entries = len(self._entries)

        return {
            "entries": entries,
            "estimated_bytes": total,
            "estimated_mb": round(total / (1024 * 1024), 2),
        }

    def stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with counters, hit rate, entries and memory usage
        """
        with self._lock:
            counters = self._stats.to_dict()

        return {
            **counters,
            "entries": self.size,
            "memory": self.memory_usage(),
        }

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        with self._lock:
            self._stats = CacheStats()
        logger.info("Cache statistics reset")

    def start_cleanup_task(self, interval: Optional[float] = None) -> asyncio.Task:
        """
        Start the periodic expired-entry sweep on the running event loop.

        Args:
            interval: Seconds between sweeps (defaults to config)

        Returns:
            Background task
        """
        if self._cleanup_task and not self._cleanup_task.done():
            return self._cleanup_task

        period = interval or config.cache_cleanup_interval_seconds
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(period))
        logger.info("Cache cleanup task started", interval=period)
        return self._cleanup_task

    async def close(self) -> None:
        """Stop the periodic sweep."""
        if not self._cleanup_task:
            return

        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
        logger.info("Cache cleanup task stopped")

    async def _cleanup_loop(self, interval: float) -> None:
        """Background task sweeping expired entries."""
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup()
            except Exception as e:
                logger.error("Cache cleanup loop error", error=str(e))

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Get entry if present and unexpired, deleting it if expired.

        Caller must hold the lock.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("Cache entry expired", key=key)
            return None

        return entry

    def _evict_oldest(self) -> None:
        """
        Evict the entry with the smallest creation time.

        Caller must hold the lock.
        """
        if not self._entries:
            return

        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest_key]
        self._stats.evictions += 1
        logger.debug("Cache evict", key=oldest_key)

    @staticmethod
    def _estimate_size(value: Any) -> int:
        """
        Estimate serialized size of a value in bytes.

        Args:
            value: Value to measure

        Returns:
            Approximate UTF-8 JSON size
        """
        if isinstance(value, BaseModel):
            return len(value.model_dump_json().encode("utf-8"))

        if isinstance(value, list) and value and isinstance(value[0], BaseModel):
            return sum(len(item.model_dump_json().encode("utf-8")) for item in value)

        return len(json.dumps(value, default=str).encode("utf-8"))
