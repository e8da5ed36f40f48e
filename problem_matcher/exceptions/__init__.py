"""
Custom exceptions for the application.
"""


class AppError(Exception):
    """Base exception for application errors."""

    pass


class InvalidInputError(AppError, ValueError):
    """Raised when a caller passes unusable input (empty key, empty text batch)."""

    pass


class EmbeddingError(AppError):
    """Raised when embedding generation fails."""

    pass


class TransientRemoteError(EmbeddingError):
    """Raised when the provider keeps failing with retryable errors."""

    pass


class AuthenticationFailure(EmbeddingError):
    """Raised when the provider rejects the configured credential."""

    pass


class KnowledgeBaseError(AppError):
    """Raised when the knowledge-base collaborator fails."""

    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid."""

    pass


class MatchCancelledError(AppError):
    """Raised inside a match when its cancel event is set."""

    pass
