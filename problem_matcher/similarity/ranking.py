"""
Result ranking and response assembly.

Shared by provider scoring and lexical scoring so both produce the same
response shape.
"""

import time
from statistics import median
from typing import List, Optional

from problem_matcher.models.problem import (
    MatchResponse,
    MatchResult,
    ScoringStrategy,
    SimilarityDistribution,
    SimilarityStatistics,
)
from problem_matcher.similarity.score_calculator import SimilarityScoreCalculator
from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


def similarity_distribution(results: List[MatchResult]) -> SimilarityDistribution:
    """Count results per similarity band."""
    distribution = SimilarityDistribution()
    for result in results:
        band = SimilarityScoreCalculator.interpret_score(result.similarity)
        field = band.value
        setattr(distribution, field, getattr(distribution, field) + 1)
    return distribution


def rank_results(
    results: List[MatchResult],
    threshold: float,
    max_results: int,
    strategy: ScoringStrategy,
    started_at: float,
    keyword_boosts: int = 0,
    model: Optional[str] = None,
) -> MatchResponse:
    """
    Sort, filter and summarize scored candidates.

    Args:
        results: Scored candidates in any order
        threshold: Minimum similarity for filtered results
        max_results: Cap on filtered results
        strategy: How the scores were produced
        started_at: ``time.perf_counter()`` value when scoring began
        keyword_boosts: Number of results raised by keyword boost
        model: Embedding model, when one was used

    Returns:
        MatchResponse with sorted, filtered results and diagnostics
    """
    ordered = sorted(results, key=lambda r: r.similarity, reverse=True)
    filtered = [r for r in ordered if r.similarity >= threshold][:max_results]
    max_similarity = ordered[0].similarity if ordered else 0.0

    scores = [r.similarity for r in ordered]
    statistics = SimilarityStatistics(
        distribution=similarity_distribution(ordered),
        avg_similarity=round(sum(scores) / len(scores), 4) if scores else 0.0,
        median_similarity=round(median(scores), 4) if scores else 0.0,
        keyword_boosts_applied=keyword_boosts,
    )

    recommended = SimilarityScoreCalculator.recommend_threshold(
        max_similarity, len(filtered)
    )
    if recommended is not None and ordered:
        logger.info(
            "Few results above threshold",
            threshold=threshold,
            above_threshold=len(filtered),
            max_similarity=round(max_similarity, 4),
            recommended_threshold=recommended,
        )

    return MatchResponse(
        all_results=ordered,
        filtered_results=filtered,
        max_similarity=max_similarity,
        threshold=threshold,
        recommended_threshold=recommended,
        processing_time_ms=round((time.perf_counter() - started_at) * 1000, 2),
        embedding_type=strategy,
        total_found=len(ordered),
        model=model,
        statistics=statistics,
    )
