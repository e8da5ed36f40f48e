"""Test cache entry models."""

import pytest
from pydantic import ValidationError

from problem_matcher.models.cache_entry import CacheEntry, CacheStats


class TestCacheEntry:
    """Test cache entry model."""

    def test_should_create_cache_entry(self):
        """Test basic cache entry creation."""
        entry = CacheEntry(
            value={"a": 1}, created_at=100.0, expires_at=160.0, last_accessed_at=100.0
        )

        assert entry.value == {"a": 1}
        assert entry.access_count == 0
        assert entry.size_estimate_bytes == 0

    def test_should_reject_expiry_before_creation(self):
        """Test expires_at >= created_at is enforced."""
        with pytest.raises(ValidationError):
            CacheEntry(value=1, created_at=100.0, expires_at=99.0, last_accessed_at=100.0)

    def test_should_allow_zero_ttl(self):
        """Test an entry may expire at its creation instant."""
        entry = CacheEntry(
            value=1, created_at=100.0, expires_at=100.0, last_accessed_at=100.0
        )
        assert entry.is_expired(100.0) is False
        assert entry.is_expired(100.1) is True

    def test_should_touch(self):
        """Test touch bumps access metadata."""
        entry = CacheEntry(
            value=1, created_at=100.0, expires_at=200.0, last_accessed_at=100.0
        )
        entry.touch(150.0)
        entry.touch(160.0)

        assert entry.access_count == 2
        assert entry.last_accessed_at == 160.0

    def test_should_report_ttl_remaining(self):
        """Test remaining TTL never goes negative."""
        entry = CacheEntry(
            value=1, created_at=100.0, expires_at=200.0, last_accessed_at=100.0
        )
        assert entry.ttl_remaining(150.0) == 50.0
        assert entry.ttl_remaining(500.0) == 0.0


class TestCacheStats:
    """Test cache counters."""

    def test_hit_rate_empty(self):
        """Test hit rate with no lookups."""
        assert CacheStats().hit_rate == 0.0

    def test_hit_rate(self):
        """Test hit rate is hits over lookups."""
        stats = CacheStats(hits=3, misses=1)
        assert stats.hit_rate == 0.75

    def test_to_dict(self):
        """Test dictionary includes counters and hit rate."""
        data = CacheStats(hits=1, misses=2, sets=3, evictions=4, cleanups=5).to_dict()

        assert data == {
            "hits": 1,
            "misses": 2,
            "sets": 3,
            "evictions": 4,
            "cleanups": 5,
            "hit_rate": 0.3333,
        }
