"""
Pytest configuration and fixtures.

Provides common fixtures for testing.
"""

import asyncio
from typing import Dict, List, Optional, Set
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from problem_matcher.cache.ttl_cache import TTLCache
from problem_matcher.config import AppConfig
from problem_matcher.embeddings.client import EmbeddingBatch
from problem_matcher.embeddings.service import EmbeddingConfig
from problem_matcher.models.problem import CandidatePage, CandidateRecord, KnowledgeBaseRecord
from problem_matcher.services.knowledge_base import KnowledgeBaseClient

EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKnowledgeBase(KnowledgeBaseClient):
    """In-memory knowledge base that counts calls."""

    def __init__(
        self,
        records: Optional[List[KnowledgeBaseRecord]] = None,
        attributes: Optional[Dict[tuple, str]] = None,
        failing_ids: Optional[Set[str]] = None,
    ):
        self.records = records or []
        self.attributes = attributes or {}
        self.failing_ids = failing_ids or set()
        self.page_calls: List[int] = []
        self.attribute_calls: List[tuple] = []

    async def fetch_candidates(
        self, collection_id: str, page: int, page_size: int
    ) -> CandidatePage:
        self.page_calls.append(page)
        await asyncio.sleep(0)
        start = page * page_size
        return CandidatePage(
            records=self.records[start : start + page_size],
            total_count=len(self.records),
        )

    async def fetch_attribute(self, record_id: str, attribute: str) -> Optional[str]:
        self.attribute_calls.append((record_id, attribute))
        if record_id in self.failing_ids:
            raise ConnectionError(f"lookup failed for {record_id}")
        return self.attributes.get((record_id, attribute))


def keyword_vector(text: str) -> List[float]:
    """Tiny deterministic embedding: one axis per topic plus a shared bias."""
    lowered = text.lower()
    return [
        1.0 if "graph" in lowered else 0.0,
        1.0 if "image" in lowered else 0.0,
        1.0 if "protein" in lowered else 0.0,
        0.5,
    ]


def keyword_batch(texts: List[str]) -> EmbeddingBatch:
    """Build a provider batch from keyword vectors."""
    return EmbeddingBatch(
        vectors=[keyword_vector(t) for t in texts],
        total_tokens=2 * len(texts),
        latency_ms=1.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Create controllable clock."""
    return FakeClock()


@pytest.fixture
def test_config() -> AppConfig:
    """
    Create test configuration.

    Returns:
        Test configuration instance
    """
    return AppConfig(
        openai_api_key="test-key",
        embedding_model="text-embedding-3-small",
        embedding_max_retries=1,
        embedding_retry_delay=0.0,
    )


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    """Embedding settings with a credential and no pacing delays."""
    return EmbeddingConfig(
        api_key="test-key",
        max_retries=0,
        retry_base_delay=0.0,
        min_request_interval=0.0,
    )


@pytest.fixture
def memo_cache(clock: FakeClock) -> TTLCache:
    """Cache for embedding or match tests."""
    return TTLCache(max_entries=1000, default_ttl=3600.0, clock=clock)


@pytest.fixture
def mock_api_client() -> Mock:
    """
    Mock embedding API client answering with keyword vectors.

    Returns:
        Mocked client
    """
    client = Mock()
    client.create = AsyncMock(side_effect=keyword_batch)
    client.close = AsyncMock()
    return client


@pytest.fixture
def candidates() -> List[CandidateRecord]:
    """Enriched candidates covering three topics."""
    return [
        CandidateRecord(
            id="R1",
            label="Graph neural networks",
            description="Representation learning on graphs",
            paper_count=12,
        ),
        CandidateRecord(id="R2", label="Image segmentation", paper_count=3),
        CandidateRecord(id="R3", label="Protein folding", paper_count=7),
    ]


@pytest.fixture
def kb_records() -> List[KnowledgeBaseRecord]:
    """Raw listing records; descriptions come from attribute lookups."""
    return [
        KnowledgeBaseRecord(id="R1", label="Image classification with deep learning"),
        KnowledgeBaseRecord(id="R2", label="Unrelated topic"),
        KnowledgeBaseRecord(
            id="R3", label="Object detection", description="Finding objects in images"
        ),
    ]


@pytest.fixture
def knowledge_base(kb_records: List[KnowledgeBaseRecord]) -> FakeKnowledgeBase:
    """Knowledge base with three records."""
    return FakeKnowledgeBase(
        records=kb_records,
        attributes={
            ("R1", "description"): "CNN-based",
            ("R1", "SAME_AS"): "Deep image recognition",
        },
    )


@pytest.fixture
def openai_error():
    """
    Factory for openai status errors with a real HTTP response.

    Returns:
        Callable(error_cls, status, headers=None) -> error instance
    """

    def _make(error_cls, status: int, headers: Optional[dict] = None):
        response = httpx.Response(
            status,
            headers=headers or {},
            request=httpx.Request("POST", EMBEDDINGS_URL),
        )
        return error_cls(f"HTTP {status}", response=response, body=None)

    return _make
