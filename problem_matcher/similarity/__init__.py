"""
Similarity calculation utilities.

This module provides vector similarity computation, keyword boosting,
lexical fallback scoring and result ranking.
"""

from problem_matcher.similarity.keywords import (
    KeywordBoost,
    boost_for_keyword_matches,
    extract_keywords,
    term_frequencies,
)
from problem_matcher.similarity.lexical import LexicalScorer
from problem_matcher.similarity.ranking import rank_results, similarity_distribution
from problem_matcher.similarity.score_calculator import (
    ScoreCalculator,
    SimilarityBand,
    SimilarityScoreCalculator,
    cosine_similarity,
)

__all__ = [
    # Keywords
    "KeywordBoost",
    "boost_for_keyword_matches",
    "extract_keywords",
    "term_frequencies",
    # Lexical fallback
    "LexicalScorer",
    # Ranking
    "rank_results",
    "similarity_distribution",
    # Score calculation
    "ScoreCalculator",
    "SimilarityBand",
    "SimilarityScoreCalculator",
    "cosine_similarity",
]
