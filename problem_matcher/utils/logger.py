"""
Structured logging configuration.

Following Sandi Metz principles:
- Single Responsibility: Logging setup and configuration
- Small functions: Each setup step isolated
- Clear naming: Descriptive function names
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render one JSON object per line instead of console output
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """
    Bind values to every log event emitted inside the block.

    Bindings live in context variables, so concurrent matches on the
    same event loop keep separate values.

    Args:
        **values: Key/value pairs to bind
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def log_cache_hit(key: str, source: str, **kwargs: Any) -> None:
    """
    Log cache hit.

    Args:
        key: Cache key
        source: Which cache served the hit (matches/candidates/embeddings)
        **kwargs: Additional context
    """
    logger = get_logger("cache")
    logger.debug("cache_hit", key=key[:100], source=source, **kwargs)


def log_cache_miss(key: str, source: str, **kwargs: Any) -> None:
    """
    Log cache miss.

    Args:
        key: Cache key
        source: Which cache was consulted
        **kwargs: Additional context
    """
    logger = get_logger("cache")
    logger.debug("cache_miss", key=key[:100], source=source, **kwargs)


def log_embedding_call(model: str, texts: int, tokens: int, **kwargs: Any) -> None:
    """
    Log embedding provider call.

    Args:
        model: Embedding model name
        texts: Number of texts sent
        tokens: Total tokens billed
        **kwargs: Additional context
    """
    logger = get_logger("embeddings")
    logger.info("embedding_call", model=model, texts=texts, tokens=tokens, **kwargs)


def log_error(error: Exception, context: str, **kwargs: Any) -> None:
    """
    Log error with context.

    Args:
        error: Exception that occurred
        context: Error context
        **kwargs: Additional context
    """
    logger = get_logger("error")
    logger.error(
        "error_occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context,
        **kwargs
    )
