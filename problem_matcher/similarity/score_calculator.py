"""
Similarity score calculation and interpretation.

Sandi Metz Principles:
- Single Responsibility: Score calculation
- Small methods: Each calculation isolated
- Clear naming: Descriptive method names
"""

import math
from enum import Enum
from typing import List, Optional, Sequence

from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


class SimilarityBand(str, Enum):
    """Diagnostic similarity bands."""

    VERY_HIGH = "very_high"  # > 0.8
    HIGH = "high"  # 0.6 - 0.8
    MEDIUM = "medium"  # 0.4 - 0.6
    LOW = "low"  # 0.2 - 0.4
    VERY_LOW = "very_low"  # <= 0.2


class SimilarityScoreCalculator:
    """
    Calculator for similarity scores.

    Provides score calculation, banding and threshold hints.
    """

    VERY_HIGH_THRESHOLD = 0.8
    HIGH_THRESHOLD = 0.6
    MEDIUM_THRESHOLD = 0.4
    LOW_THRESHOLD = 0.2

    MIN_RECOMMENDED_THRESHOLD = 0.1
    RECOMMENDATION_MARGIN = 0.1
    DEFAULT_RECOMMENDED_THRESHOLD = 0.2
    SPARSE_RESULT_COUNT = 3

    @staticmethod
    def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """
        Calculate cosine similarity clamped to [0, 1].

        Mismatched dimensions and zero vectors score 0.0 instead of raising.

        Args:
            vec1: First vector
            vec2: Second vector

        Returns:
            Similarity score (0.0 to 1.0)
        """
        if not vec1 or not vec2 or len(vec1) != len(vec2):
            if vec1 and vec2:
                logger.warning("Vector size mismatch", v1=len(vec1), v2=len(vec2))
            return 0.0

        dot_product = sum(a * b for a, b in zip(vec1, vec2))
        magnitude1 = math.sqrt(sum(a * a for a in vec1))
        magnitude2 = math.sqrt(sum(b * b for b in vec2))

        if magnitude1 == 0 or magnitude2 == 0:
            return 0.0

        similarity = dot_product / (magnitude1 * magnitude2)
        return max(0.0, min(1.0, similarity))

    @classmethod
    def cosine_similarities(
        cls, query: Sequence[float], vectors: List[Sequence[float]]
    ) -> List[float]:
        """Score one query vector against many vectors."""
        return [cls.cosine_similarity(query, vector) for vector in vectors]

    @classmethod
    def interpret_score(cls, score: float) -> SimilarityBand:
        """
        Classify a score into a diagnostic band.

        Args:
            score: Similarity score (0.0 to 1.0)

        Returns:
            SimilarityBand enum
        """
        if score > cls.VERY_HIGH_THRESHOLD:
            return SimilarityBand.VERY_HIGH
        elif score > cls.HIGH_THRESHOLD:
            return SimilarityBand.HIGH
        elif score > cls.MEDIUM_THRESHOLD:
            return SimilarityBand.MEDIUM
        elif score > cls.LOW_THRESHOLD:
            return SimilarityBand.LOW
        else:
            return SimilarityBand.VERY_LOW

    @classmethod
    def recommend_threshold(
        cls, max_similarity: float, filtered_count: int
    ) -> Optional[float]:
        """
        Suggest a lower threshold when few results passed.

        Args:
            max_similarity: Best score in the unfiltered set
            filtered_count: Number of results above the current threshold

        Returns:
            Suggested threshold, or None when results are not sparse
        """
        if filtered_count >= cls.SPARSE_RESULT_COUNT:
            return None

        if max_similarity <= 0:
            return cls.DEFAULT_RECOMMENDED_THRESHOLD

        return round(
            max(cls.MIN_RECOMMENDED_THRESHOLD, max_similarity - cls.RECOMMENDATION_MARGIN),
            4,
        )


# Convenience aliases for easier imports
ScoreCalculator = SimilarityScoreCalculator


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate clamped cosine similarity between vectors."""
    return SimilarityScoreCalculator.cosine_similarity(vec1, vec2)
