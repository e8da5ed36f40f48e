"""
Keyword extraction and keyword-overlap boosting.

Sandi Metz Principles:
- Single Responsibility: Token-level text features
- Pure functions: No side effects
"""

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Set

_NON_WORD = re.compile(r"[^\w\s]")

# Short list used for the embedding keyword boost
BOOST_STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "the", "is", "at", "which", "on", "and", "a", "an", "as", "are",
        "was", "were", "been", "be", "have", "has", "had", "do", "does",
        "did", "will", "would", "could", "should", "may", "might", "can",
        "for", "with", "by", "from", "about", "into", "through", "to", "of", "in",
    }
)

# Broader list used for lexical term frequencies
LEXICAL_STOP_WORDS: FrozenSet[str] = BOOST_STOP_WORDS | frozenset(
    {
        "shall", "during", "before", "after", "above", "below", "between",
        "under", "again", "further", "then", "once", "all", "it", "its",
        "itself", "they", "them", "their", "what", "who", "whom", "this",
        "that", "these", "those", "am", "i", "you", "he", "she", "we", "me",
        "him", "her", "us", "my", "your", "his", "our", "any", "no", "nor",
        "not", "only", "own", "same", "so", "than", "too", "very", "just",
        "where", "when", "how", "why", "such", "both", "each", "few", "more",
        "most", "other", "some",
    }
)

LONG_TOKEN_LENGTH = 6


def tokenize(text: str) -> list:
    """Lower-case text, replace punctuation with spaces and split."""
    return _NON_WORD.sub(" ", text.lower()).split()


def extract_keywords(
    text: str, min_length: int = 3, stop_words: FrozenSet[str] = BOOST_STOP_WORDS
) -> Set[str]:
    """
    Extract distinct keywords.

    Args:
        text: Source text
        min_length: Tokens must be strictly longer than this
        stop_words: Tokens to drop

    Returns:
        Set of keywords
    """
    return {
        token
        for token in tokenize(text)
        if len(token) > min_length and token not in stop_words
    }


def term_frequencies(text: str) -> Dict[str, int]:
    """
    Weighted term-frequency map for lexical similarity.

    Tokens longer than two characters count once, tokens longer than
    six characters count twice.
    """
    frequencies: Dict[str, int] = {}
    for token in tokenize(text):
        if len(token) <= 2 or token in LEXICAL_STOP_WORDS:
            continue
        weight = 2 if len(token) > LONG_TOKEN_LENGTH else 1
        frequencies[token] = frequencies.get(token, 0) + weight
    return frequencies


@dataclass(frozen=True)
class KeywordBoost:
    """Outcome of a keyword boost."""

    similarity: float
    boost: float
    matches: int
    important_matches: int

    @property
    def applied(self) -> bool:
        """Check if the boost changed the score."""
        return self.boost > 0


def boost_for_keyword_matches(
    similarity: float,
    query_text: str,
    candidate_text: str,
    boost_factor: float,
    max_boost: float,
) -> KeywordBoost:
    """
    Raise a similarity score for keywords shared by query and candidate.

    Each shared keyword adds ``boost_factor``; keywords longer than six
    characters add twice that. The total is capped at ``max_boost`` and
    the result never exceeds 1.0.

    Args:
        similarity: Base similarity
        query_text: Query text
        candidate_text: Candidate comparison text
        boost_factor: Increment per shared keyword
        max_boost: Cap on the total increment

    Returns:
        KeywordBoost with the boosted similarity
    """
    shared = extract_keywords(query_text) & extract_keywords(candidate_text)
    important = sum(1 for keyword in shared if len(keyword) > LONG_TOKEN_LENGTH)

    raw_boost = (len(shared) - important) * boost_factor + important * boost_factor * 2
    boost = max(0.0, min(max_boost, raw_boost))
    boosted = min(1.0, similarity + boost)

    return KeywordBoost(
        similarity=boosted,
        boost=boosted - similarity if boosted > similarity else 0.0,
        matches=len(shared),
        important_matches=important,
    )
