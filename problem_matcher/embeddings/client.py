"""
OpenAI embeddings API client.

Sandi Metz Principles:
- Single Responsibility: Embedding API interaction
- Small methods: Each method < 15 lines
- Dependency Injection: Rate limiter, retry handler and SDK client injected
"""

import time
from dataclasses import dataclass
from typing import List

from openai import (
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
    PermissionDeniedError,
)

from problem_matcher.embeddings.rate_limiter import RateLimitConfig, RateLimiter
from problem_matcher.embeddings.retry import RetryHandler
from problem_matcher.exceptions import (
    AuthenticationFailure,
    EmbeddingError,
    TransientRemoteError,
)
from problem_matcher.utils.logger import get_logger, log_embedding_call

logger = get_logger(__name__)


@dataclass
class EmbeddingBatch:
    """Vectors returned by one provider call."""

    vectors: List[List[float]]
    total_tokens: int
    latency_ms: float


class EmbeddingAPIClient:
    """
    Thin wrapper over the OpenAI embeddings endpoint.

    Every attempt passes through the shared rate limiter; retryable
    failures go through the retry handler; provider errors are
    translated into the application taxonomy.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
        requests_per_minute: int = 3000,
        client: AsyncOpenAI | None = None,
    ):
        """
        Initialize API client.

        Args:
            api_key: Provider credential
            model: Embedding model name
            base_url: API base URL (SDK default if None)
            timeout: Per-call timeout in seconds
            rate_limiter: Optional rate limiter (creates default if None)
            retry_handler: Optional retry handler (creates default if None)
            requests_per_minute: Budget for the default rate limiter
            client: Pre-built SDK client (optional)
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._timeout = timeout
        self._client = client
        self._rate_limiter = rate_limiter or RateLimiter(
            RateLimitConfig(requests_per_minute=requests_per_minute)
        )
        self._retry_handler = retry_handler or RetryHandler()

    async def create(self, texts: List[str]) -> EmbeddingBatch:
        """
        Embed texts in a single logical request.

        Args:
            texts: Non-empty texts, at most one provider batch

        Returns:
            Vectors in input order

        Raises:
            AuthenticationFailure: Credential rejected (401/403)
            TransientRemoteError: Retryable failures outlasted the retries
            EmbeddingError: Any other provider failure
        """
        try:
            return await self._retry_handler.execute(lambda: self._make_api_call(texts))
        except (AuthenticationError, PermissionDeniedError) as e:
            logger.error("Embedding credential rejected", status=e.status_code)
            raise AuthenticationFailure(f"Credential rejected: {e}") from e
        except RetryHandler.RETRYABLE_EXCEPTIONS as e:
            raise TransientRemoteError(
                f"Embedding provider unavailable: {type(e).__name__} - {e}"
            ) from e
        except OpenAIError as e:
            logger.error("Embedding provider error", error=str(e))
            raise EmbeddingError(f"Embedding call failed: {e}") from e

    async def _make_api_call(self, texts: List[str]) -> EmbeddingBatch:
        """
        Make one rate-limited embeddings API call.

        Args:
            texts: Texts to embed

        Returns:
            Embedding batch
        """
        await self._rate_limiter.acquire()
        client = self._get_client()
        start_time = time.perf_counter()

        response = await client.embeddings.create(
            input=texts,
            model=self._model,
            encoding_format="float",
        )

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingError(
                f"Provider returned {len(data)} embeddings for {len(texts)} inputs"
            )

        tokens = response.usage.total_tokens if response.usage else 0
        latency_ms = (time.perf_counter() - start_time) * 1000
        log_embedding_call(
            model=self._model,
            texts=len(texts),
            tokens=tokens,
            latency_ms=round(latency_ms, 2),
        )

        return EmbeddingBatch(
            vectors=[list(item.embedding) for item in data],
            total_tokens=tokens,
            latency_ms=latency_ms,
        )

    def _get_client(self) -> AsyncOpenAI:
        """
        Get or create OpenAI client.

        SDK retries are disabled; retrying is owned by the retry handler.

        Returns:
            OpenAI async client
        """
        if not self._client:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    def rate_limit_stats(self) -> dict:
        """
        Get request pacing statistics.

        Returns:
            Rate limiter counters and remaining budget
        """
        return self._rate_limiter.get_stats()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.close()
            self._client = None
