"""
Services module.

Contains the knowledge-base interface and the problem matcher.
"""

from problem_matcher.services.knowledge_base import KnowledgeBaseClient
from problem_matcher.services.problem_matcher import (
    MatcherSettings,
    MatcherStats,
    MatchState,
    ProblemMatcher,
)

__all__ = [
    "KnowledgeBaseClient",
    "MatcherSettings",
    "MatcherStats",
    "MatchState",
    "ProblemMatcher",
]
