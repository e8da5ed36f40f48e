"""
Cache key generation utilities.

Sandi Metz Principles:
- Single Responsibility: Hash generation
- Small functions: Each does one thing
- Pure functions: No side effects
"""

import hashlib

MATCH_KEY_PREFIX = "problem_match_"
CANDIDATES_KEY_PREFIX = "problems_"
EMBEDDING_KEY_PREFIX = "emb:"


def hash_text(text: str, length: int = 16) -> str:
    """
    Stable short hash of text.

    Args:
        text: Text to hash
        length: Number of hex characters to keep

    Returns:
        Hex digest prefix (identical across processes)
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]


def text_seed(text: str) -> int:
    """
    Derive a 64-bit integer seed from text.

    Args:
        text: Seed source

    Returns:
        Non-negative integer seed
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def generate_match_key(query: str, collection_id: str, threshold: float) -> str:
    """
    Generate cache key for a match response.

    Args:
        query: Query text
        collection_id: Collection searched
        threshold: Similarity threshold applied

    Returns:
        Cache key (problem_match_<collection>_<hash>_<threshold>)
    """
    return f"{MATCH_KEY_PREFIX}{collection_id}_{hash_text(query)}_{threshold}"


def generate_candidates_key(collection_id: str) -> str:
    """
    Generate cache key for the enriched candidates of a collection.

    Args:
        collection_id: Collection identifier

    Returns:
        Cache key
    """
    return f"{CANDIDATES_KEY_PREFIX}{collection_id}_all"


def generate_embedding_key(model: str, text: str) -> str:
    """
    Generate key for storing embeddings.

    Args:
        model: Embedding model name
        text: Embedded text

    Returns:
        Embedding key
    """
    return f"{EMBEDDING_KEY_PREFIX}{model}:{hash_text(text, length=64)}"
