"""
Research problem and match result models.

Sandi Metz Principles:
- Small classes with clear purpose
- Computed properties for derived values
- Clear naming conventions
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

UNKNOWN_PROBLEM_TEXT = "unknown problem"


class ScoringStrategy(str, Enum):
    """
    How a match response was scored.

    Recorded in every result so callers can tell real embeddings from
    degraded paths.
    """

    PROVIDER = "provider"
    PROVIDER_FALLBACK = "provider-fallback"
    LEXICAL = "fallback-text"
    NONE = "none"


class KnowledgeBaseRecord(BaseModel):
    """Raw record as listed by the knowledge base."""

    id: str = Field(default="", description="Record identifier")
    label: str = Field(default="", description="Record title")
    description: str = Field(default="", description="Description, if listed")
    paper_count: int = Field(default=0, ge=0, description="Papers addressing it")


class CandidatePage(BaseModel):
    """One page of a paginated candidate listing."""

    records: List[KnowledgeBaseRecord] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0, description="Total records available")


class CandidateRecord(BaseModel):
    """Knowledge-base record enriched with description and alias."""

    id: str = Field(..., min_length=1, description="Record identifier")
    label: str = Field(default="", description="Record title")
    description: str = Field(default="", description="Record description")
    alias: str = Field(default="", description="Same-as label")
    paper_count: int = Field(default=0, ge=0, description="Papers addressing it")

    @property
    def comparison_text(self) -> str:
        """Space-joined non-empty label, description and alias; never empty."""
        parts = [
            part.strip()
            for part in (self.label, self.description, self.alias)
            if part and part.strip()
        ]
        return " ".join(parts) or UNKNOWN_PROBLEM_TEXT


class MatchDetails(BaseModel):
    """Keyword overlap counters from lexical scoring."""

    matched_terms: int = Field(default=0, ge=0)
    query_terms: int = Field(default=0, ge=0)
    candidate_terms: int = Field(default=0, ge=0)
    label_in_query: bool = Field(default=False)


class MatchResult(CandidateRecord):
    """Candidate record with its similarity to the query."""

    similarity: float = Field(..., ge=0.0, le=1.0, description="Similarity score")
    confidence_score: float = Field(..., ge=0.0, le=1.0, description="Confidence")
    embedding_type: ScoringStrategy = Field(..., description="Scoring strategy")
    match_details: Optional[MatchDetails] = Field(default=None)

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateRecord,
        similarity: float,
        embedding_type: ScoringStrategy,
        match_details: Optional[MatchDetails] = None,
    ) -> "MatchResult":
        """Build a result from a candidate, mirroring similarity into confidence."""
        score = min(1.0, max(0.0, similarity))
        return cls(
            **candidate.model_dump(),
            similarity=score,
            confidence_score=score,
            embedding_type=embedding_type,
            match_details=match_details,
        )


class SimilarityDistribution(BaseModel):
    """Count of results per similarity band."""

    very_high: int = 0  # > 0.8
    high: int = 0  # 0.6 - 0.8
    medium: int = 0  # 0.4 - 0.6
    low: int = 0  # 0.2 - 0.4
    very_low: int = 0  # <= 0.2


class SimilarityStatistics(BaseModel):
    """Diagnostics over the unfiltered result set."""

    distribution: SimilarityDistribution = Field(default_factory=SimilarityDistribution)
    avg_similarity: float = 0.0
    median_similarity: float = 0.0
    keyword_boosts_applied: int = 0


class MatchResponse(BaseModel):
    """Ranked outcome of a match request; always structurally valid."""

    all_results: List[MatchResult] = Field(default_factory=list)
    filtered_results: List[MatchResult] = Field(default_factory=list)
    max_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    threshold: float = Field(..., ge=0.0, le=1.0)
    recommended_threshold: Optional[float] = Field(default=None)
    processing_time_ms: float = Field(default=0.0, ge=0.0)
    embedding_type: ScoringStrategy = Field(default=ScoringStrategy.NONE)
    total_found: int = Field(default=0, ge=0)
    collection_id: Optional[str] = Field(default=None)
    model: Optional[str] = Field(default=None)
    statistics: Optional[SimilarityStatistics] = Field(default=None)
    error: Optional[str] = Field(default=None)
    cancelled: bool = Field(default=False)

    @classmethod
    def empty(
        cls,
        threshold: float,
        collection_id: Optional[str] = None,
        error: Optional[str] = None,
        embedding_type: ScoringStrategy = ScoringStrategy.NONE,
        cancelled: bool = False,
    ) -> "MatchResponse":
        """Create a response with no candidates."""
        return cls(
            threshold=threshold,
            collection_id=collection_id,
            error=error,
            embedding_type=embedding_type,
            cancelled=cancelled,
        )

    @property
    def above_threshold(self) -> int:
        """Number of results that passed the threshold."""
        return len(self.filtered_results)

    @property
    def is_error(self) -> bool:
        """Check whether the match degraded because of an error."""
        return self.error is not None


class MatchProgress(BaseModel):
    """Progress report passed to ``on_progress`` callbacks."""

    phase: str = Field(..., description="fetching or enriching")
    found: int = Field(default=0, ge=0, description="Records fetched so far")
    page: int = Field(default=0, ge=0, description="Pages fetched so far")
    percent: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = Field(default="")
