"""
Request pipeline module.

Contains request coordination components:
- In-flight request deduplication
"""

from problem_matcher.pipeline.deduplication import (
    DeduplicationStats,
    InFlightRequests,
    PendingRequest,
)

__all__ = [
    "DeduplicationStats",
    "InFlightRequests",
    "PendingRequest",
]
