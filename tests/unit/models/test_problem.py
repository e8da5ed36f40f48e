"""Test research problem and match models."""

import pytest
from pydantic import ValidationError

from problem_matcher.models.problem import (
    UNKNOWN_PROBLEM_TEXT,
    CandidateRecord,
    MatchProgress,
    MatchResponse,
    MatchResult,
    ScoringStrategy,
)


class TestCandidateRecord:
    """Test candidate record model."""

    def test_should_require_id(self):
        """Test empty id is rejected."""
        with pytest.raises(ValidationError):
            CandidateRecord(id="")

    def test_comparison_text_joins_non_empty_parts(self):
        """Test label, description and alias are space-joined."""
        record = CandidateRecord(
            id="R1", label=" Graph mining ", description="", alias="Network mining"
        )
        assert record.comparison_text == "Graph mining Network mining"

    def test_comparison_text_placeholder(self):
        """Test record without text gets the placeholder."""
        assert CandidateRecord(id="R1").comparison_text == UNKNOWN_PROBLEM_TEXT


class TestMatchResult:
    """Test match result model."""

    def test_from_candidate_mirrors_confidence(self):
        """Test confidence equals similarity."""
        candidate = CandidateRecord(id="R1", label="Graph mining", paper_count=4)
        result = MatchResult.from_candidate(candidate, 0.42, ScoringStrategy.PROVIDER)

        assert result.id == "R1"
        assert result.paper_count == 4
        assert result.similarity == 0.42
        assert result.confidence_score == 0.42
        assert result.embedding_type == ScoringStrategy.PROVIDER

    @pytest.mark.parametrize("raw, expected", [(-0.2, 0.0), (1.3, 1.0)])
    def test_from_candidate_clamps(self, raw, expected):
        """Test similarity is clamped into [0, 1]."""
        candidate = CandidateRecord(id="R1")
        result = MatchResult.from_candidate(candidate, raw, ScoringStrategy.LEXICAL)
        assert result.similarity == expected


class TestMatchResponse:
    """Test match response model."""

    def test_empty_response(self):
        """Test empty response is structurally valid."""
        response = MatchResponse.empty(threshold=0.5, collection_id="C1")

        assert response.all_results == []
        assert response.filtered_results == []
        assert response.total_found == 0
        assert response.embedding_type == ScoringStrategy.NONE
        assert response.is_error is False
        assert response.above_threshold == 0

    def test_error_response(self):
        """Test error flag."""
        response = MatchResponse.empty(threshold=0.5, error="boom")
        assert response.is_error is True

    def test_strategy_values(self):
        """Test strategy tags as serialized."""
        assert ScoringStrategy.LEXICAL.value == "fallback-text"
        assert ScoringStrategy.PROVIDER_FALLBACK.value == "provider-fallback"


class TestMatchProgress:
    """Test progress model."""

    def test_rejects_percent_over_100(self):
        """Test percent bounds."""
        with pytest.raises(ValidationError):
            MatchProgress(phase="fetching", percent=101)
