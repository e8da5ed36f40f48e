"""
Caching module.

Provides the in-memory TTL cache shared by the matcher and the
embedding service.
"""

from problem_matcher.cache.ttl_cache import TTLCache

__all__ = ["TTLCache"]
