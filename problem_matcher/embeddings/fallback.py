"""
Deterministic placeholder embeddings.

Stand-in vectors derived from a stable hash of the text. They carry no
semantic meaning; they only keep ranking code working while the
provider is unavailable.
"""

from typing import List

import numpy as np

from problem_matcher.utils.hasher import text_seed


def fallback_vector(text: str, dimensions: int) -> List[float]:
    """
    Generate a unit-length pseudo-random vector for text.

    The same text always yields the same vector, across processes.

    Args:
        text: Source text
        dimensions: Vector length

    Returns:
        L2-normalized vector
    """
    rng = np.random.default_rng(text_seed(text))
    vector = rng.standard_normal(dimensions)
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector.tolist()
    return (vector / norm).tolist()
