"""
Lexical similarity fallback.

Scores candidates by cosine similarity of weighted term-frequency
vectors. Used whenever no embedding provider can score a request.

Sandi Metz Principles:
- Single Responsibility: Keyword-vector similarity
- Small methods: Each scoring step isolated
- No dependencies: Pure in-process computation
"""

import math
import time
from typing import Dict, List, Tuple

from problem_matcher.models.problem import (
    CandidateRecord,
    MatchDetails,
    MatchResponse,
    MatchResult,
    ScoringStrategy,
)
from problem_matcher.similarity.keywords import term_frequencies
from problem_matcher.similarity.ranking import rank_results
from problem_matcher.utils.logger import get_logger

logger = get_logger(__name__)


class LexicalScorer:
    """
    Keyword-vector cosine similarity.

    Raw lexical cosine under-scores true matches compared with
    embeddings, so scores are scaled up and clamped to 1.0.
    """

    SCORE_MULTIPLIER = 1.5
    LABEL_IN_QUERY_BONUS = 0.3

    def __init__(
        self,
        score_multiplier: float = SCORE_MULTIPLIER,
        label_bonus: float = LABEL_IN_QUERY_BONUS,
    ):
        """
        Initialize lexical scorer.

        Args:
            score_multiplier: Scale applied to raw cosine
            label_bonus: Added when the candidate label appears in the query
        """
        self._multiplier = score_multiplier
        self._label_bonus = label_bonus

    def score(
        self,
        query_text: str,
        candidates: List[CandidateRecord],
        threshold: float,
        max_results: int,
    ) -> MatchResponse:
        """
        Rank candidates against the query.

        Args:
            query_text: Query text
            candidates: Candidates to score
            threshold: Minimum similarity for filtered results
            max_results: Cap on filtered results

        Returns:
            MatchResponse tagged ``fallback-text``
        """
        started_at = time.perf_counter()
        query_terms = term_frequencies(query_text)
        query_lower = query_text.lower()

        results = []
        for candidate in candidates:
            similarity, details = self.score_candidate(
                query_terms, query_lower, candidate
            )
            results.append(
                MatchResult.from_candidate(
                    candidate,
                    similarity=similarity,
                    embedding_type=ScoringStrategy.LEXICAL,
                    match_details=details,
                )
            )

        response = rank_results(
            results,
            threshold=threshold,
            max_results=max_results,
            strategy=ScoringStrategy.LEXICAL,
            started_at=started_at,
        )

        logger.info(
            "Lexical scoring complete",
            candidates=len(candidates),
            above_threshold=response.above_threshold,
            max_similarity=round(response.max_similarity, 4),
        )
        return response

    def score_candidate(
        self,
        query_terms: Dict[str, int],
        query_lower: str,
        candidate: CandidateRecord,
    ) -> Tuple[float, MatchDetails]:
        """
        Score a single candidate.

        Args:
            query_terms: Term frequencies of the query
            query_lower: Lower-cased query text
            candidate: Candidate to score

        Returns:
            Tuple of (similarity, match details)
        """
        candidate_terms = term_frequencies(candidate.comparison_text)
        similarity = min(
            1.0, self.keyword_cosine(query_terms, candidate_terms) * self._multiplier
        )

        label = candidate.label.strip().lower()
        label_in_query = bool(label) and label in query_lower
        if label_in_query:
            similarity = min(1.0, similarity + self._label_bonus)

        details = MatchDetails(
            matched_terms=len(query_terms.keys() & candidate_terms.keys()),
            query_terms=len(query_terms),
            candidate_terms=len(candidate_terms),
            label_in_query=label_in_query,
        )
        return similarity, details

    @staticmethod
    def keyword_cosine(terms1: Dict[str, int], terms2: Dict[str, int]) -> float:
        """
        Cosine similarity of two term-frequency maps.

        Returns:
            Similarity (0.0 to 1.0), 0.0 when either map is empty
        """
        if not terms1 or not terms2:
            return 0.0

        intersection = sum(freq * terms2.get(term, 0) for term, freq in terms1.items())
        magnitude1 = math.sqrt(sum(freq * freq for freq in terms1.values()))
        magnitude2 = math.sqrt(sum(freq * freq for freq in terms2.values()))

        return intersection / (magnitude1 * magnitude2)
