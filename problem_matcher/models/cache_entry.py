"""
Cache entry models.

Sandi Metz Principles:
- Single Responsibility: Cache data structure
- Clear naming: Descriptive fields
- Owned data: Entries never leave the cache by reference
"""

from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CacheEntry(BaseModel):
    """Single TTL cache slot with access metadata."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    value: Any = Field(..., description="Deep-copied cached value")
    created_at: float = Field(..., description="Creation timestamp (epoch seconds)")
    expires_at: float = Field(..., description="Expiry timestamp (epoch seconds)")
    access_count: int = Field(default=0, ge=0, description="Number of live reads")
    last_accessed_at: float = Field(..., description="Last read or write timestamp")
    size_estimate_bytes: int = Field(default=0, ge=0, description="Estimated size")

    @model_validator(mode="after")
    def validate_expiry(self) -> "CacheEntry":
        """Validate the entry does not expire before it was created."""
        if self.expires_at < self.created_at:
            raise ValueError(
                f"expires_at ({self.expires_at}) precedes created_at ({self.created_at})"
            )
        return self

    def is_expired(self, now: float) -> bool:
        """Check whether the entry has expired at ``now``."""
        return self.expires_at < now

    def touch(self, now: float) -> None:
        """Record a live read."""
        self.access_count += 1
        self.last_accessed_at = now

    def ttl_remaining(self, now: float) -> float:
        """Seconds left before expiry (never negative)."""
        return max(0.0, self.expires_at - now)


@dataclass
class CacheStats:
    """Cumulative cache counters."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0
    cleanups: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate (0.0 to 1.0)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict:
        """Convert to dictionary including the derived hit rate."""
        return {**asdict(self), "hit_rate": round(self.hit_rate, 4)}
