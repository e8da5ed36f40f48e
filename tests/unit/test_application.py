"""Test matcher application lifecycle."""

from unittest.mock import patch

import pytest

from problem_matcher.application import MatcherApplication, open_matcher
from problem_matcher.config import AppConfig
from problem_matcher.embeddings.service import EmbeddingService
from problem_matcher.exceptions import ConfigurationError
from problem_matcher.models.problem import ScoringStrategy


@pytest.fixture
def offline_config() -> AppConfig:
    """Configuration without a provider credential."""
    return AppConfig(
        _env_file=None,
        openai_api_key="",
        embedding_use_fallback=True,
        match_default_threshold=0.2,
    )


class TestMatcherApplication:
    """Test startup and shutdown."""

    @pytest.mark.asyncio
    async def test_startup_wires_components(self, knowledge_base, offline_config):
        """Test startup builds every component."""
        app = MatcherApplication(knowledge_base, offline_config)

        matcher = await app.startup()

        assert app.matcher is matcher
        assert app.embeddings.fallback_mode is True
        assert matcher.status()["has_embedding_service"] is True
        await app.shutdown()
        assert app.cache is None

    @pytest.mark.asyncio
    async def test_offline_matching_is_lexical(self, knowledge_base, offline_config):
        """Test a matcher without a credential still ranks candidates."""
        async with open_matcher(knowledge_base, offline_config) as matcher:
            response = await matcher.find_similar_problems(
                "deep learning image classification", "C1"
            )

        assert response.embedding_type == ScoringStrategy.LEXICAL
        assert response.filtered_results[0].id == "R1"

    @pytest.mark.asyncio
    async def test_missing_credential_without_fallback(self, knowledge_base):
        """Test strict mode requires a credential."""
        settings = AppConfig(
            _env_file=None, openai_api_key="", embedding_use_fallback=False
        )

        with pytest.raises(ConfigurationError):
            await MatcherApplication(knowledge_base, settings).startup()

    @pytest.mark.asyncio
    async def test_shutdown_stops_cleanup_task(self, knowledge_base, offline_config):
        """Test the cache sweep is cancelled on shutdown."""
        app = MatcherApplication(knowledge_base, offline_config)
        await app.startup()
        task = app.cache._cleanup_task

        await app.shutdown()

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_embedding_memos_use_separate_cache(
        self, knowledge_base, offline_config
    ):
        """Test embedding memos are not stored next to match results."""
        app = MatcherApplication(knowledge_base, offline_config)
        await app.startup()

        assert app.embedding_cache is not None
        assert app.embedding_cache is not app.cache
        await app.shutdown()
        assert app.embedding_cache is None

    @pytest.mark.asyncio
    async def test_memos_do_not_evict_cached_matches(
        self, knowledge_base, mock_api_client
    ):
        """Test a cached match survives embedding traffic for other collections."""
        settings = AppConfig(
            _env_file=None,
            openai_api_key="test-key",
            match_default_threshold=0.2,
            cache_max_entries=6,
        )
        query = "deep learning image classification"

        with patch.object(
            EmbeddingService, "_get_api_client", return_value=mock_api_client
        ):
            async with open_matcher(knowledge_base, settings) as matcher:
                first = await matcher.find_similar_problems(query, "A")
                await matcher.find_similar_problems(query, "B")
                await matcher.find_similar_problems(query, "C")
                calls = len(knowledge_base.page_calls)

                repeat = await matcher.find_similar_problems(query, "A")

        assert first.embedding_type == ScoringStrategy.PROVIDER
        assert len(knowledge_base.page_calls) == calls
        assert repeat.filtered_results == first.filtered_results
