"""
Research problem matcher.

Ranks knowledge-base research problems by semantic similarity to a
query, backed by a TTL cache and a rate-limited embedding provider.
"""

__version__ = "0.1.0"
