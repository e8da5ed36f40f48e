"""
Matcher application wiring.

Following Sandi Metz:
- Single Responsibility: Lifecycle of shared matcher resources
- Small methods: Each lifecycle stage isolated
- Clear naming: Descriptive function names
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from problem_matcher.cache.ttl_cache import TTLCache
from problem_matcher.config import AppConfig, config
from problem_matcher.embeddings.service import EmbeddingConfig, EmbeddingService
from problem_matcher.exceptions import ConfigurationError
from problem_matcher.services.knowledge_base import KnowledgeBaseClient
from problem_matcher.services.problem_matcher import MatcherSettings, ProblemMatcher
from problem_matcher.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class MatcherApplication:
    """
    Owns the cache, embedding service and matcher for one process.

    Provider embedding memos get their own cache so a burst of memos
    cannot evict candidate lists or match responses.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBaseClient,
        settings: Optional[AppConfig] = None,
    ) -> None:
        self._knowledge_base = knowledge_base
        self._settings = settings or config
        self.cache: Optional[TTLCache] = None
        self.embedding_cache: Optional[TTLCache] = None
        self.embeddings: Optional[EmbeddingService] = None
        self.matcher: Optional[ProblemMatcher] = None

    async def startup(self) -> ProblemMatcher:
        """
        Build and initialize matcher resources.

        Returns:
            Ready matcher

        Raises:
            ConfigurationError: No credential while fallback is disabled
        """
        setup_logging(self._settings.log_level, json_logs=self._settings.log_json)
        self._validate()

        self.cache = TTLCache(
            max_entries=self._settings.cache_max_entries,
            default_ttl=self._settings.cache_default_ttl_seconds,
        )
        self.cache.start_cleanup_task(self._settings.cache_cleanup_interval_seconds)
        self.embedding_cache = TTLCache(
            max_entries=self._settings.embedding_cache_max_entries,
            default_ttl=self._settings.embedding_cache_ttl_seconds,
        )
        self.embedding_cache.start_cleanup_task(
            self._settings.cache_cleanup_interval_seconds
        )

        self.embeddings = EmbeddingService(
            settings=EmbeddingConfig.from_settings(self._settings),
            cache=self.embedding_cache,
        )
        self.matcher = ProblemMatcher(
            knowledge_base=self._knowledge_base,
            embedding_service=self.embeddings,
            cache=self.cache,
            settings=MatcherSettings.from_settings(self._settings),
        )

        uses_embeddings = await self.matcher.init()
        logger.info(
            "Problem matcher started",
            app=self._settings.app_name,
            embeddings=uses_embeddings,
        )
        return self.matcher

    async def shutdown(self) -> None:
        """Release matcher resources."""
        logger.info("Shutting down problem matcher")
        if self.matcher:
            await self.matcher.close()
        if self.cache:
            await self.cache.close()
        if self.embedding_cache:
            await self.embedding_cache.close()
        self.matcher = None
        self.embeddings = None
        self.cache = None
        self.embedding_cache = None

    def _validate(self) -> None:
        if not self._settings.has_api_key and not self._settings.embedding_use_fallback:
            raise ConfigurationError(
                "OPENAI_API_KEY is required when EMBEDDING_USE_FALLBACK is disabled"
            )


@asynccontextmanager
async def open_matcher(
    knowledge_base: KnowledgeBaseClient, settings: Optional[AppConfig] = None
) -> AsyncIterator[ProblemMatcher]:
    """Run a matcher for the duration of the block."""
    app = MatcherApplication(knowledge_base, settings)
    matcher = await app.startup()
    try:
        yield matcher
    finally:
        await app.shutdown()
