"""
Embedding provider adapter.

Turns texts into vectors through the remote provider, memoizes them,
and degrades to deterministic placeholder vectors or lexical similarity
when the provider cannot serve a request.

Sandi Metz Principles:
- Single Responsibility: Embedding generation and vector scoring
- Small methods: Each step isolated
- Dependency Injection: Cache, API client and lexical scorer injected
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from problem_matcher.cache.ttl_cache import TTLCache
from problem_matcher.config import AppConfig, config
from problem_matcher.embeddings.client import EmbeddingAPIClient, EmbeddingBatch
from problem_matcher.embeddings.fallback import fallback_vector
from problem_matcher.embeddings.rate_limiter import RateLimitConfig, RateLimiter
from problem_matcher.embeddings.retry import RetryConfig, RetryHandler
from problem_matcher.exceptions import (
    AuthenticationFailure,
    EmbeddingError,
    InvalidInputError,
)
from problem_matcher.models.embedding import EmbeddingVector, VectorSource
from problem_matcher.models.problem import (
    CandidateRecord,
    MatchResponse,
    MatchResult,
    ScoringStrategy,
)
from problem_matcher.similarity.keywords import boost_for_keyword_matches
from problem_matcher.similarity.lexical import LexicalScorer
from problem_matcher.similarity.ranking import rank_results
from problem_matcher.similarity.score_calculator import SimilarityScoreCalculator
from problem_matcher.utils.hasher import EMBEDDING_KEY_PREFIX, generate_embedding_key
from problem_matcher.utils.logger import get_logger, log_cache_hit, log_cache_miss

logger = get_logger(__name__)

MODEL_DIMENSIONS = {"text-embedding-3-large": 3072}
DEFAULT_DIMENSIONS = 1536
UNKNOWN_CANDIDATE_TEXT = "unknown research problem"
PROBE_TEXT = "test"

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"\.\s+")


class EmbeddingConfig(BaseModel):
    """Immutable embedding provider settings."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(default="", repr=False, description="Provider credential")
    model: str = Field(default="text-embedding-3-small", description="Model name")
    dimensions: Optional[int] = Field(
        default=None, ge=1, description="Vector size (derived from model if None)"
    )
    base_url: Optional[str] = Field(default=None, description="API base URL")
    max_batch_size: int = Field(default=100, ge=1)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    requests_per_minute: int = Field(default=3000, ge=1)
    min_request_interval: float = Field(default=0.05, ge=0.0)
    timeout: float = Field(default=30.0, gt=0.0)
    use_fallback: bool = Field(default=True)
    boost_keyword_matches: bool = Field(default=True)
    keyword_boost_factor: float = Field(default=0.02, ge=0.0, le=1.0)
    max_keyword_boost: float = Field(default=0.2, ge=0.0, le=1.0)
    max_text_length: int = Field(default=8000, ge=1)
    cache_ttl: float = Field(default=86400.0, ge=0.0)

    @property
    def has_api_key(self) -> bool:
        """Check if a credential is configured."""
        return bool(self.api_key.strip())

    @property
    def expected_dimensions(self) -> int:
        """Vector size before the provider has answered."""
        return self.dimensions or MODEL_DIMENSIONS.get(self.model, DEFAULT_DIMENSIONS)

    @classmethod
    def from_settings(cls, settings: Optional[AppConfig] = None) -> "EmbeddingConfig":
        """
        Build from application settings.

        Args:
            settings: Application configuration (global config if None)

        Returns:
            EmbeddingConfig instance
        """
        settings = settings or config
        return cls(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            base_url=settings.embedding_base_url,
            max_batch_size=settings.embedding_max_batch_size,
            max_retries=settings.embedding_max_retries,
            retry_base_delay=settings.embedding_retry_delay,
            requests_per_minute=settings.embedding_requests_per_minute,
            timeout=settings.embedding_timeout,
            use_fallback=settings.embedding_use_fallback,
            boost_keyword_matches=settings.keyword_boost_enabled,
            keyword_boost_factor=settings.keyword_boost_factor,
            max_keyword_boost=settings.max_keyword_boost,
            cache_ttl=settings.embedding_cache_ttl_seconds,
        )


@dataclass
class EmbeddingStats:
    """Embedding adapter counters."""

    total_embeddings: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    api_calls: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0
    total_tokens: int = 0
    fallback_used: int = 0
    keyword_boosts: int = 0

    @property
    def average_latency_ms(self) -> float:
        """Mean provider call latency."""
        if self.api_calls == 0:
            return 0.0
        return self.total_latency_ms / self.api_calls

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_embeddings": self.total_embeddings,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "api_calls": self.api_calls,
            "errors": self.errors,
            "average_latency_ms": round(self.average_latency_ms, 2),
            "total_tokens": self.total_tokens,
            "fallback_used": self.fallback_used,
            "keyword_boosts": self.keyword_boosts,
        }


class EmbeddingService:
    """
    Embedding generation with batching, memoization and degradation.

    Fallback mode is entered when no credential is configured, when the
    startup probe fails, or when the provider rejects the credential.
    It is permanent for the lifetime of the service.
    """

    def __init__(
        self,
        settings: Optional[EmbeddingConfig] = None,
        cache: Optional[TTLCache] = None,
        api_client: Optional[EmbeddingAPIClient] = None,
        lexical_scorer: Optional[LexicalScorer] = None,
    ):
        """
        Initialize embedding service.

        Args:
            settings: Provider settings (built from global config if None)
            cache: Embedding memo cache (creates one if None)
            api_client: Provider client (created lazily if None)
            lexical_scorer: Scorer used while in fallback mode
        """
        self._settings = settings or EmbeddingConfig.from_settings()
        self._cache = cache or TTLCache(default_ttl=self._settings.cache_ttl)
        self._api_client = api_client
        self._lexical_scorer = lexical_scorer or LexicalScorer()
        self._dimensions = self._settings.expected_dimensions
        self._stats = EmbeddingStats()
        self._fallback_mode = False
        self._fallback_reason: Optional[str] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def fallback_mode(self) -> bool:
        """Check if the provider is bypassed."""
        return self._fallback_mode

    @property
    def dimensions(self) -> int:
        """Current vector size."""
        return self._dimensions

    @property
    def model(self) -> str:
        """Embedding model name."""
        return self._settings.model

    async def init(self) -> bool:
        """
        Prepare the adapter, probing the provider once.

        Safe to call repeatedly; only the first call does any work.

        Returns:
            True when the adapter is usable (possibly in fallback mode)

        Raises:
            EmbeddingError: Probe failed and fallback is disabled
        """
        async with self._init_lock:
            if self._initialized:
                return True

            if not self._settings.has_api_key:
                self._enable_fallback("no credential configured")
            else:
                await self._probe_provider()

            self._initialized = True
            logger.info(
                "Embedding service initialized",
                model=self._settings.model,
                dimensions=self._dimensions,
                fallback_mode=self._fallback_mode,
            )
            return True

    async def _probe_provider(self) -> None:
        """Make one real call to verify the credential and learn dimensions."""
        try:
            batch = await self._get_api_client().create([PROBE_TEXT])
        except EmbeddingError as e:
            self._stats.errors += 1
            if not self._settings.use_fallback:
                raise EmbeddingError(f"Embedding provider probe failed: {e}") from e
            self._enable_fallback(f"probe failed: {e}")
            return

        self._record_batch(batch)

    async def embed(
        self, texts: List[str], normalize: bool = True
    ) -> List[EmbeddingVector]:
        """
        Embed texts, one vector per non-empty input.

        Args:
            texts: Texts to embed; blank entries are dropped
            normalize: Whether to L2-normalize the output

        Returns:
            Vectors in input order

        Raises:
            InvalidInputError: No non-empty text remains
            EmbeddingError: Provider failed and fallback is disabled
        """
        prepared = [self.preprocess_text(t) for t in texts if isinstance(t, str)]
        prepared = [t for t in prepared if t]
        if not prepared:
            raise InvalidInputError("No valid texts to embed")

        await self._ensure_initialized()

        if self._fallback_mode:
            vectors = [self._placeholder(t) for t in prepared]
        else:
            vectors = []
            batch_size = self._settings.max_batch_size
            for start in range(0, len(prepared), batch_size):
                batch = prepared[start : start + batch_size]
                vectors.extend(await self._embed_batch(batch))

        self._stats.total_embeddings += len(vectors)
        if normalize:
            vectors = [v if v.normalized else v.normalize() for v in vectors]
        return vectors

    async def _embed_batch(self, texts: List[str]) -> List[EmbeddingVector]:
        """
        Embed one provider batch, serving memoized texts from the cache.

        Args:
            texts: At most ``max_batch_size`` prepared texts

        Returns:
            Vectors in input order
        """
        results: List[Optional[EmbeddingVector]] = [None] * len(texts)
        missing: List[int] = []

        for index, text in enumerate(texts):
            key = generate_embedding_key(self._settings.model, text)
            cached = self._cache.get(key)
            if cached is not None:
                self._stats.cache_hits += 1
                log_cache_hit(key, source="embeddings")
                results[index] = EmbeddingVector.create(
                    cached, self._settings.model, source=VectorSource.CACHE
                )
            else:
                self._stats.cache_misses += 1
                log_cache_miss(key, source="embeddings")
                missing.append(index)

        if missing:
            fetched = await self._fetch_vectors([texts[i] for i in missing])
            for index, vector in zip(missing, fetched):
                results[index] = vector

        return results

    async def _fetch_vectors(self, texts: List[str]) -> List[EmbeddingVector]:
        """
        Call the provider for uncached texts.

        A failed batch yields placeholder vectors for exactly these texts.
        A rejected credential also switches the service to fallback mode.
        """
        try:
            batch = await self._get_api_client().create(texts)
        except EmbeddingError as e:
            self._stats.errors += 1
            if not self._settings.use_fallback:
                raise
            if isinstance(e, AuthenticationFailure):
                self._enable_fallback("credential rejected")
            self._stats.fallback_used += 1
            logger.warning(
                "Embedding batch failed, using placeholder vectors",
                texts=len(texts),
                error=str(e),
            )
            return [self._placeholder(t) for t in texts]

        self._record_batch(batch)
        vectors = []
        for text, values in zip(texts, batch.vectors):
            self._cache.set(
                generate_embedding_key(self._settings.model, text),
                values,
                ttl=self._settings.cache_ttl,
            )
            vectors.append(EmbeddingVector.create(values, self._settings.model))
        return vectors

    async def find_similar(
        self,
        query_text: str,
        candidates: List[CandidateRecord],
        threshold: float = 0.5,
        max_results: int = 15,
    ) -> MatchResponse:
        """
        Rank candidates by embedding similarity to the query.

        Args:
            query_text: Problem statement to match
            candidates: Candidate records
            threshold: Minimum similarity for filtered results
            max_results: Cap on filtered results

        Returns:
            MatchResponse; lexical scoring when in fallback mode

        Raises:
            InvalidInputError: Query is empty
            EmbeddingError: Provider failed and fallback is disabled
        """
        if not query_text or not query_text.strip():
            raise InvalidInputError("Query text cannot be empty")
        if not candidates:
            return MatchResponse.empty(threshold=threshold)

        started_at = time.perf_counter()
        await self._ensure_initialized()

        if self._fallback_mode:
            logger.info("Provider in fallback mode, scoring lexically")
            return self._lexical_scorer.score(
                query_text, candidates, threshold, max_results
            )

        texts = [self.build_query_text(query_text)]
        texts.extend(self.build_candidate_text(c) for c in candidates)
        vectors = await self.embed(texts)

        strategy = (
            ScoringStrategy.PROVIDER_FALLBACK
            if any(v.is_fallback for v in vectors)
            else ScoringStrategy.PROVIDER
        )
        results, boosts = self._score_candidates(
            query_text, vectors[0], candidates, vectors[1:], strategy
        )

        response = rank_results(
            results,
            threshold=threshold,
            max_results=max_results,
            strategy=strategy,
            started_at=started_at,
            keyword_boosts=boosts,
            model=self._settings.model,
        )
        logger.info(
            "Embedding similarity complete",
            candidates=len(candidates),
            above_threshold=response.above_threshold,
            max_similarity=round(response.max_similarity, 4),
            strategy=strategy.value,
        )
        return response

    def _score_candidates(
        self,
        query_text: str,
        query_vector: EmbeddingVector,
        candidates: List[CandidateRecord],
        candidate_vectors: List[EmbeddingVector],
        strategy: ScoringStrategy,
    ) -> tuple:
        """
        Cosine-score each candidate and apply the keyword boost.

        Returns:
            Tuple of (unsorted results, number of boosted results)
        """
        results = []
        boosts = 0
        similarities = SimilarityScoreCalculator.cosine_similarities(
            query_vector.vector, [vector.vector for vector in candidate_vectors]
        )
        for candidate, similarity in zip(candidates, similarities):
            if self._settings.boost_keyword_matches:
                boost = boost_for_keyword_matches(
                    similarity,
                    query_text,
                    candidate.comparison_text,
                    self._settings.keyword_boost_factor,
                    self._settings.max_keyword_boost,
                )
                if boost.applied:
                    boosts += 1
                    similarity = boost.similarity
            results.append(MatchResult.from_candidate(candidate, similarity, strategy))

        self._stats.keyword_boosts += boosts
        return results, boosts

    def preprocess_text(self, text: str) -> str:
        """Collapse whitespace, trim and truncate to the provider limit."""
        collapsed = _WHITESPACE.sub(" ", text).strip()
        return collapsed[: self._settings.max_text_length]

    def build_query_text(self, query_text: str) -> str:
        """
        Weight the opening sentence of a query.

        The first sentence usually names the problem, so it is repeated
        twice ahead of the full text.
        """
        text = _WHITESPACE.sub(" ", query_text).strip()
        first_sentence = _SENTENCE_END.split(text, maxsplit=1)[0]
        return self.preprocess_text(f"{first_sentence} {first_sentence} {text}")

    def build_candidate_text(self, candidate: CandidateRecord) -> str:
        """
        Weight a candidate's label over its description.

        Returns:
            Label twice plus description, label three times without a
            description, the description alone without a label, or a
            generic placeholder when both are missing
        """
        label = candidate.label.strip()
        description = candidate.description.strip()

        if label and description:
            text = f"{label} {label} {description}"
        elif label:
            text = f"{label} {label} {label}"
        elif description:
            text = description
        else:
            text = UNKNOWN_CANDIDATE_TEXT
        return self.preprocess_text(text)

    def stats(self) -> dict:
        """
        Get adapter statistics.

        Returns:
            Dictionary with counters
        """
        return self._stats.to_dict()

    def status(self) -> dict:
        """
        Get adapter status.

        Returns:
            Dictionary with wiring, mode and statistics
        """
        return {
            "initialized": self._initialized,
            "fallback_mode": self._fallback_mode,
            "fallback_reason": self._fallback_reason,
            "has_api_key": self._settings.has_api_key,
            "model": self._settings.model,
            "dimensions": self._dimensions,
            "cache_entries": len(self._cache.keys_by_prefix(EMBEDDING_KEY_PREFIX)),
            "stats": self.stats(),
            "rate_limiter": (
                self._api_client.rate_limit_stats() if self._api_client else None
            ),
        }

    def clear_cache(self) -> int:
        """
        Drop memoized embeddings.

        Returns:
            Number of entries removed
        """
        removed = self._cache.clear_by_prefix(EMBEDDING_KEY_PREFIX)
        logger.info("Embedding cache cleared", removed=removed)
        return removed

    async def close(self) -> None:
        """Release the provider client."""
        if self._api_client:
            await self._api_client.close()

    async def _ensure_initialized(self) -> None:
        """Run ``init`` on first use."""
        if not self._initialized:
            await self.init()

    def _enable_fallback(self, reason: str) -> None:
        """Switch permanently to fallback mode."""
        if not self._fallback_mode:
            logger.warning("Embedding fallback mode enabled", reason=reason)
        self._fallback_mode = True
        self._fallback_reason = reason

    def _placeholder(self, text: str) -> EmbeddingVector:
        """Deterministic stand-in vector, never memoized."""
        return EmbeddingVector.create(
            fallback_vector(text, self._dimensions),
            self._settings.model,
            normalized=True,
            source=VectorSource.PLACEHOLDER,
        )

    def _record_batch(self, batch: EmbeddingBatch) -> None:
        """Account for a successful provider call."""
        self._stats.api_calls += 1
        self._stats.total_tokens += batch.total_tokens
        self._stats.total_latency_ms += batch.latency_ms

        actual = len(batch.vectors[0]) if batch.vectors else self._dimensions
        if actual != self._dimensions:
            logger.info(
                "Provider dimensions differ from expected",
                expected=self._dimensions,
                actual=actual,
            )
            self._dimensions = actual

    def _get_api_client(self) -> EmbeddingAPIClient:
        """Get or create the provider client."""
        if self._api_client is None:
            self._api_client = EmbeddingAPIClient(
                api_key=self._settings.api_key,
                model=self._settings.model,
                base_url=self._settings.base_url,
                timeout=self._settings.timeout,
                rate_limiter=RateLimiter(
                    RateLimitConfig(
                        requests_per_minute=self._settings.requests_per_minute,
                        min_interval=self._settings.min_request_interval,
                    )
                ),
                retry_handler=RetryHandler(
                    RetryConfig(
                        max_retries=self._settings.max_retries,
                        initial_delay=self._settings.retry_base_delay,
                    )
                ),
            )
        return self._api_client
