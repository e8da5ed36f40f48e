"""
Research problem matcher.

Orchestrates candidate fetching, enrichment, scoring and caching.

Sandi Metz Principles:
- Single Responsibility: Match orchestration
- Small methods: Each phase isolated
- Dependency Injection: Knowledge base, embeddings, cache and scorer injected
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from problem_matcher.cache.ttl_cache import TTLCache
from problem_matcher.config import AppConfig, config
from problem_matcher.embeddings.service import EmbeddingService
from problem_matcher.exceptions import (
    EmbeddingError,
    InvalidInputError,
    KnowledgeBaseError,
    MatchCancelledError,
)
from problem_matcher.models.problem import (
    CandidateRecord,
    KnowledgeBaseRecord,
    MatchProgress,
    MatchResponse,
)
from problem_matcher.pipeline.deduplication import InFlightRequests
from problem_matcher.services.knowledge_base import KnowledgeBaseClient
from problem_matcher.similarity.lexical import LexicalScorer
from problem_matcher.utils.hasher import (
    CANDIDATES_KEY_PREFIX,
    MATCH_KEY_PREFIX,
    generate_candidates_key,
    generate_match_key,
)
from problem_matcher.utils.logger import (
    get_logger,
    log_cache_hit,
    log_cache_miss,
    log_context,
    log_error,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[MatchProgress], Any]

DESCRIPTION_ATTRIBUTE = "description"
ALIAS_ATTRIBUTE = "SAME_AS"
FETCH_PROGRESS_SHARE = 50.0


class MatchState(str, Enum):
    """Phases of a single match."""

    FETCHING = "fetching"
    ENRICHING = "enriching"
    SCORING = "scoring"
    CACHING = "caching"
    DONE = "done"
    ERROR = "error"


@dataclass
class MatcherSettings:
    """Matcher tuning."""

    default_threshold: float = 0.5
    max_results: int = 15
    max_candidates: int = 500
    page_size: int = 100
    chunk_size: int = 20
    enrichment_concurrency: int = 4
    cache_ttl: float = 1800.0

    @classmethod
    def from_settings(cls, settings: Optional[AppConfig] = None) -> "MatcherSettings":
        """Build from application settings (global config if None)."""
        settings = settings or config
        return cls(
            default_threshold=settings.match_default_threshold,
            max_results=settings.match_max_results,
            max_candidates=settings.match_max_candidates,
            page_size=settings.match_page_size,
            chunk_size=settings.match_chunk_size,
            enrichment_concurrency=settings.match_enrichment_concurrency,
            cache_ttl=settings.match_cache_ttl_seconds,
        )


@dataclass
class MatcherStats:
    """Matcher counters."""

    total_matches: int = 0
    average_processing_time_ms: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    cancelled: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Hits over all cache lookups."""
        lookups = self.cache_hits + self.cache_misses
        if lookups == 0:
            return 0.0
        return self.cache_hits / lookups

    def record_match(self, processing_time_ms: float) -> None:
        """Fold one completed match into the rolling average."""
        self.total_matches += 1
        self.average_processing_time_ms += (
            processing_time_ms - self.average_processing_time_ms
        ) / self.total_matches

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_matches": self.total_matches,
            "average_processing_time_ms": round(self.average_processing_time_ms, 2),
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(self.cache_hit_rate, 4),
            "errors": self.errors,
            "cancelled": self.cancelled,
        }


@dataclass
class MatchContext:
    """State carried through one match."""

    query_text: str
    collection_id: str
    threshold: float
    max_results: int
    use_cache: bool
    cache_key: str
    on_progress: Optional[ProgressCallback] = None
    cancel_event: Optional[asyncio.Event] = None
    state: MatchState = MatchState.FETCHING
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def cancelled(self) -> bool:
        """Check if the caller asked to stop."""
        return self.cancel_event is not None and self.cancel_event.is_set()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the match started."""
        return (time.perf_counter() - self.started_at) * 1000


class ProblemMatcher:
    """
    Finds recorded research problems similar to a new problem statement.

    Only invalid input raises; every other failure is logged and turned
    into an empty response carrying the error message.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBaseClient,
        embedding_service: Optional[EmbeddingService] = None,
        cache: Optional[TTLCache] = None,
        lexical_scorer: Optional[LexicalScorer] = None,
        in_flight: Optional[InFlightRequests] = None,
        settings: Optional[MatcherSettings] = None,
    ):
        """
        Initialize matcher.

        Args:
            knowledge_base: Source of candidate problems
            embedding_service: Embedding adapter (lexical scoring only if None)
            cache: Cache for responses and candidate lists (creates one if None)
            lexical_scorer: Fallback scorer
            in_flight: Registry for deduplicating concurrent requests
            settings: Matcher tuning (from global config if None)
        """
        self._knowledge_base = knowledge_base
        self._embeddings = embedding_service
        self._settings = settings or MatcherSettings.from_settings()
        self._cache = cache or TTLCache(default_ttl=self._settings.cache_ttl)
        self._lexical = lexical_scorer or LexicalScorer()
        self._in_flight = in_flight or InFlightRequests()
        self._stats = MatcherStats()

    async def init(self) -> bool:
        """
        Initialize the embedding adapter.

        Returns:
            True when embedding scoring is available
        """
        if self._embeddings is None:
            logger.info("No embedding service configured, using lexical similarity")
            return False

        try:
            await self._embeddings.init()
        except EmbeddingError as e:
            log_error(e, context="embedding_init")
            return False
        return not self._embeddings.fallback_mode

    async def find_similar_problems(
        self,
        query_text: str,
        collection_id: str,
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
        use_cache: bool = True,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MatchResponse:
        """
        Rank a collection's research problems against a query.

        Order: Match cache -> Candidates (cached or fetched + enriched) ->
        Embedding scoring (lexical on failure) -> Cache store

        Args:
            query_text: New problem statement
            collection_id: Collection to search
            threshold: Minimum similarity (configured default if None)
            max_results: Cap on filtered results (configured default if None)
            use_cache: Whether to read and write cached results
            on_progress: Called with a MatchProgress per page and chunk
            cancel_event: Set to abandon the match between pages or chunks

        Returns:
            MatchResponse; empty with ``error`` set if the match failed

        Raises:
            InvalidInputError: Query or collection is empty, or threshold
                is outside [0, 1]
        """
        threshold = self._settings.default_threshold if threshold is None else threshold
        self._validate(query_text, collection_id, threshold)

        ctx = MatchContext(
            query_text=query_text,
            collection_id=collection_id,
            threshold=threshold,
            max_results=max_results or self._settings.max_results,
            use_cache=use_cache,
            cache_key=generate_match_key(query_text, collection_id, threshold),
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

        if use_cache:
            cached = self._cache.get(ctx.cache_key)
            if cached is not None:
                self._stats.cache_hits += 1
                log_cache_hit(ctx.cache_key, source="matches")
                return cached
            self._stats.cache_misses += 1
            log_cache_miss(ctx.cache_key, source="matches")

        with log_context(collection_id=collection_id, match_key=ctx.cache_key):
            # Progress and cancellation belong to one caller; never share them
            if on_progress is not None or cancel_event is not None:
                return await self._match(ctx)
            return await self._in_flight.run(ctx.cache_key, lambda: self._match(ctx))

    async def _match(self, ctx: MatchContext) -> MatchResponse:
        """
        Run the match phases, degrading to an empty response on failure.

        Args:
            ctx: Match context

        Returns:
            Match response
        """
        try:
            candidates = await self._load_candidates(ctx)
            if not candidates:
                logger.info("No candidates in collection", collection_id=ctx.collection_id)
                ctx.state = MatchState.DONE
                return MatchResponse.empty(ctx.threshold, ctx.collection_id)

            ctx.state = MatchState.SCORING
            response = await self._score(ctx, candidates)
            response = response.model_copy(
                update={
                    "collection_id": ctx.collection_id,
                    "processing_time_ms": round(ctx.elapsed_ms, 2),
                }
            )

            self._check_cancelled(ctx)
            ctx.state = MatchState.CACHING
            if ctx.use_cache:
                self._cache.set(ctx.cache_key, response, ttl=self._settings.cache_ttl)

            ctx.state = MatchState.DONE
            self._stats.record_match(response.processing_time_ms)
            logger.info(
                "Problem match complete",
                collection_id=ctx.collection_id,
                candidates=len(candidates),
                above_threshold=response.above_threshold,
                strategy=response.embedding_type.value,
                processing_time_ms=response.processing_time_ms,
            )
            return response

        except MatchCancelledError:
            self._stats.cancelled += 1
            logger.info(
                "Problem match cancelled",
                collection_id=ctx.collection_id,
                state=ctx.state.value,
            )
            return MatchResponse.empty(
                ctx.threshold, ctx.collection_id, error="Match cancelled", cancelled=True
            )

        except Exception as e:
            failed_in = ctx.state
            ctx.state = MatchState.ERROR
            self._stats.errors += 1
            log_error(
                e,
                context="find_similar_problems",
                collection_id=ctx.collection_id,
                state=failed_in.value,
            )
            return MatchResponse.empty(ctx.threshold, ctx.collection_id, error=str(e))

    async def _load_candidates(self, ctx: MatchContext) -> List[CandidateRecord]:
        """
        Get enriched candidates, from cache when possible.

        Args:
            ctx: Match context

        Returns:
            Enriched candidates
        """
        key = generate_candidates_key(ctx.collection_id)
        if ctx.use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                log_cache_hit(key, source="candidates", count=len(cached))
                return cached
            log_cache_miss(key, source="candidates")

        records = await self._fetch_records(ctx)
        if not records:
            return []

        ctx.state = MatchState.ENRICHING
        candidates = await self._enrich(ctx, records)
        self._check_cancelled(ctx)

        if ctx.use_cache:
            self._cache.set(key, candidates, ttl=self._settings.cache_ttl)
        return candidates

    async def _fetch_records(self, ctx: MatchContext) -> List[KnowledgeBaseRecord]:
        """
        Page through the collection until exhausted or the cap is reached.

        Args:
            ctx: Match context

        Returns:
            Raw records with an identifier, at most ``max_candidates``
        """
        limit = self._settings.max_candidates
        page_size = self._settings.page_size
        records: List[KnowledgeBaseRecord] = []
        page = 0

        while len(records) < limit:
            self._check_cancelled(ctx)
            try:
                result = await self._knowledge_base.fetch_candidates(
                    ctx.collection_id, page=page, page_size=page_size
                )
            except Exception as e:
                raise KnowledgeBaseError(
                    f"Failed to fetch page {page} of {ctx.collection_id}: {e}"
                ) from e
            page += 1
            records.extend(r for r in result.records if r.id)

            await self._report(
                ctx,
                MatchProgress(
                    phase=MatchState.FETCHING.value,
                    found=len(records),
                    page=page,
                    percent=min(
                        FETCH_PROGRESS_SHARE,
                        len(records) / limit * FETCH_PROGRESS_SHARE,
                    ),
                    message=f"Fetching problems: {len(records)} loaded",
                ),
            )

            exhausted = (
                len(result.records) < page_size
                or 0 < result.total_count <= page * page_size
            )
            if exhausted:
                break

        logger.info(
            "Fetched candidates",
            collection_id=ctx.collection_id,
            count=min(len(records), limit),
            pages=page,
        )
        return records[:limit]

    async def _enrich(
        self, ctx: MatchContext, records: List[KnowledgeBaseRecord]
    ) -> List[CandidateRecord]:
        """
        Fetch descriptions and aliases, chunk by chunk.

        Chunks run one after another; lookups within a chunk run
        concurrently up to ``enrichment_concurrency``.
        """
        chunk_size = self._settings.chunk_size
        chunks = [records[i : i + chunk_size] for i in range(0, len(records), chunk_size)]
        semaphore = asyncio.Semaphore(self._settings.enrichment_concurrency)
        enriched: List[CandidateRecord] = []

        for index, chunk in enumerate(chunks):
            self._check_cancelled(ctx)
            enriched.extend(
                await asyncio.gather(
                    *(self._enrich_record(record, semaphore) for record in chunk)
                )
            )

            done = (index + 1) / len(chunks)
            await self._report(
                ctx,
                MatchProgress(
                    phase=MatchState.ENRICHING.value,
                    found=len(records),
                    page=index + 1,
                    percent=FETCH_PROGRESS_SHARE + done * (100 - FETCH_PROGRESS_SHARE),
                    message=f"Processing chunk {index + 1}/{len(chunks)}",
                ),
            )

        return enriched

    async def _enrich_record(
        self, record: KnowledgeBaseRecord, semaphore: asyncio.Semaphore
    ) -> CandidateRecord:
        """Build a candidate, looking up what the listing left out."""
        async with semaphore:
            description = record.description.strip()
            if not description:
                description = await self._lookup(record.id, DESCRIPTION_ATTRIBUTE)
            alias = await self._lookup(record.id, ALIAS_ATTRIBUTE)

        return CandidateRecord(
            id=record.id,
            label=record.label.strip(),
            description=description,
            alias=alias,
            paper_count=record.paper_count,
        )

    async def _lookup(self, record_id: str, attribute: str) -> str:
        """
        Fetch an attribute, treating any failure as missing.

        Returns:
            Stripped attribute value or empty string
        """
        try:
            value = await self._knowledge_base.fetch_attribute(record_id, attribute)
        except Exception as e:
            logger.debug(
                "Attribute lookup failed",
                record_id=record_id,
                attribute=attribute,
                error=str(e),
            )
            return ""
        return (value or "").strip()

    async def _score(
        self, ctx: MatchContext, candidates: List[CandidateRecord]
    ) -> MatchResponse:
        """
        Score with embeddings, falling back to lexical similarity.

        Args:
            ctx: Match context
            candidates: Enriched candidates

        Returns:
            Match response
        """
        if self._embeddings is not None:
            try:
                return await self._embeddings.find_similar(
                    ctx.query_text, candidates, ctx.threshold, ctx.max_results
                )
            except Exception as e:
                logger.warning(
                    "Embedding scoring failed, using lexical similarity",
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return self._lexical.score(
            ctx.query_text, candidates, ctx.threshold, ctx.max_results
        )

    async def _report(self, ctx: MatchContext, progress: MatchProgress) -> None:
        """Deliver progress to the caller's callback, sync or async."""
        if ctx.on_progress is None:
            return

        try:
            result = ctx.on_progress(progress)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning("Progress callback failed", error=str(e))

    @staticmethod
    def _check_cancelled(ctx: MatchContext) -> None:
        """Raise if the caller set the cancel event."""
        if ctx.cancelled:
            raise MatchCancelledError(f"Match cancelled during {ctx.state.value}")

    @staticmethod
    def _validate(query_text: str, collection_id: str, threshold: float) -> None:
        """Reject unusable input."""
        if not query_text or not query_text.strip():
            raise InvalidInputError("Query text cannot be empty")
        if not collection_id or not collection_id.strip():
            raise InvalidInputError("Collection id cannot be empty")
        if not 0.0 <= threshold <= 1.0:
            raise InvalidInputError(f"Threshold must be within [0, 1], got {threshold}")

    def clear_cache(self) -> int:
        """
        Remove cached match responses and candidate lists.

        Returns:
            Number of entries removed
        """
        removed = self._cache.clear_by_prefix(MATCH_KEY_PREFIX)
        removed += self._cache.clear_by_prefix(CANDIDATES_KEY_PREFIX)
        logger.info("Match cache cleared", removed=removed)
        return removed

    def stats(self) -> dict:
        """
        Get matcher statistics.

        Returns:
            Dictionary with counters
        """
        return self._stats.to_dict()

    def status(self) -> dict:
        """
        Get matcher status.

        Returns:
            Dictionary with wiring, cache and statistics
        """
        return {
            "has_embedding_service": self._embeddings is not None,
            "embeddings": self._embeddings.status() if self._embeddings else None,
            "cache": self._cache.stats(),
            "in_flight": self._in_flight.pending_count,
            "deduplication": self._in_flight.stats.to_dict(),
            "stats": self.stats(),
        }

    async def close(self) -> None:
        """Release the embedding adapter."""
        if self._embeddings is not None:
            await self._embeddings.close()
