"""
Tests for result ranking.
"""

import time

import pytest

from problem_matcher.models.problem import CandidateRecord, MatchResult, ScoringStrategy
from problem_matcher.similarity.ranking import rank_results, similarity_distribution


def make_results(scores):
    """Build results with the given similarities."""
    return [
        MatchResult.from_candidate(
            CandidateRecord(id=f"R{i}"), score, ScoringStrategy.PROVIDER
        )
        for i, score in enumerate(scores)
    ]


class TestRankResults:
    """Test ranking and response assembly."""

    def test_sorts_filters_and_caps(self):
        """Test descending order, threshold and max_results."""
        response = rank_results(
            make_results([0.3, 0.9, 0.7, 0.6, 0.55]),
            threshold=0.5,
            max_results=3,
            strategy=ScoringStrategy.PROVIDER,
            started_at=time.perf_counter(),
        )

        assert [r.similarity for r in response.all_results] == [0.9, 0.7, 0.6, 0.55, 0.3]
        assert [r.similarity for r in response.filtered_results] == [0.9, 0.7, 0.6]
        assert response.max_similarity == 0.9
        assert response.total_found == 5
        assert response.recommended_threshold is None

    def test_threshold_is_inclusive(self):
        """Test results equal to the threshold pass."""
        response = rank_results(
            make_results([0.5]),
            threshold=0.5,
            max_results=3,
            strategy=ScoringStrategy.PROVIDER,
            started_at=time.perf_counter(),
        )
        assert response.above_threshold == 1

    def test_sparse_results_recommend_threshold(self):
        """Test hint when fewer than three results pass."""
        response = rank_results(
            make_results([0.45, 0.3]),
            threshold=0.5,
            max_results=10,
            strategy=ScoringStrategy.LEXICAL,
            started_at=time.perf_counter(),
        )

        assert response.filtered_results == []
        assert response.recommended_threshold == pytest.approx(0.35)
        assert response.embedding_type == ScoringStrategy.LEXICAL

    def test_statistics(self):
        """Test average, median and boost count."""
        response = rank_results(
            make_results([0.9, 0.5, 0.1]),
            threshold=0.0,
            max_results=10,
            strategy=ScoringStrategy.PROVIDER,
            started_at=time.perf_counter(),
            keyword_boosts=2,
            model="text-embedding-3-small",
        )

        assert response.statistics.avg_similarity == pytest.approx(0.5)
        assert response.statistics.median_similarity == 0.5
        assert response.statistics.keyword_boosts_applied == 2
        assert response.model == "text-embedding-3-small"

    def test_empty_results(self):
        """Test no results still yields a valid response."""
        response = rank_results(
            [],
            threshold=0.5,
            max_results=10,
            strategy=ScoringStrategy.PROVIDER,
            started_at=time.perf_counter(),
        )

        assert response.max_similarity == 0.0
        assert response.recommended_threshold == 0.2


class TestSimilarityDistribution:
    """Test band counts."""

    def test_counts_per_band(self):
        """Test every result lands in one band."""
        distribution = similarity_distribution(
            make_results([0.95, 0.7, 0.5, 0.3, 0.1, 0.2])
        )

        assert distribution.very_high == 1
        assert distribution.high == 1
        assert distribution.medium == 1
        assert distribution.low == 1
        assert distribution.very_low == 2
