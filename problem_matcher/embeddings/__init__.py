"""
Embedding provider adapter.

This module provides the provider client, rate limiting, retries,
deterministic placeholder vectors and the embedding service.
"""

from problem_matcher.embeddings.client import EmbeddingAPIClient, EmbeddingBatch
from problem_matcher.embeddings.fallback import fallback_vector
from problem_matcher.embeddings.rate_limiter import (
    RateLimitConfig,
    RateLimiter,
    RateLimitStats,
)
from problem_matcher.embeddings.retry import RetryConfig, RetryHandler
from problem_matcher.embeddings.service import (
    EmbeddingConfig,
    EmbeddingService,
    EmbeddingStats,
)

__all__ = [
    "EmbeddingAPIClient",
    "EmbeddingBatch",
    "EmbeddingConfig",
    "EmbeddingService",
    "EmbeddingStats",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitStats",
    "RetryConfig",
    "RetryHandler",
    "fallback_vector",
]
