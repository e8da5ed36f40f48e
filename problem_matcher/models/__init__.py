"""
Models package for the problem matcher.

Exports all model classes for easy imports throughout the application.
"""

# Cache models
from problem_matcher.models.cache_entry import CacheEntry, CacheStats

# Embedding models
from problem_matcher.models.embedding import EmbeddingVector, VectorSource

# Problem and match models
from problem_matcher.models.problem import (
    UNKNOWN_PROBLEM_TEXT,
    CandidatePage,
    CandidateRecord,
    KnowledgeBaseRecord,
    MatchDetails,
    MatchProgress,
    MatchResponse,
    MatchResult,
    ScoringStrategy,
    SimilarityDistribution,
    SimilarityStatistics,
)

__all__ = [
    # Cache
    "CacheEntry",
    "CacheStats",
    # Embedding
    "EmbeddingVector",
    "VectorSource",
    # Problems
    "UNKNOWN_PROBLEM_TEXT",
    "CandidatePage",
    "CandidateRecord",
    "KnowledgeBaseRecord",
    "MatchDetails",
    "MatchProgress",
    "MatchResponse",
    "MatchResult",
    "ScoringStrategy",
    "SimilarityDistribution",
    "SimilarityStatistics",
]
