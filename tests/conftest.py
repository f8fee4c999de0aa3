"""
Shared fixtures: an in-memory chunk store, mock providers, and a small
technology-news corpus.

Corpus (3-dim unit vectors so nearest-neighbour order is obvious):
    c1  "Sam Altman is the CEO of OpenAI."                  [1, 0, 0]  page 1
    c2  "OpenAI partnered with Microsoft to use Azure."     [0, 1, 0]  page 2
    c3  "Microsoft invested billions in OpenAI. ..."        [0, 0, 1]  page 3
"""

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from hybrid_kg.config.settings import KGConfig
from hybrid_kg.storage.base import ChunkStore
from hybrid_kg.types import (
    ChunkStats,
    EvidenceOrigin,
    EvidencePassage,
    Passage,
)

# -----------------------------------------------------------------------------
# In-memory chunk store
# -----------------------------------------------------------------------------


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryChunkStore(ChunkStore):
    """Exhaustive cosine search over a dict of passages."""

    def __init__(self, passages: list[Passage] | None = None) -> None:
        self.passages: dict[str, Passage] = {}
        self.initialized = False
        self.closed = False
        for passage in passages or []:
            self.passages[passage.chunk_id] = passage

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def search(self, vector, limit, filter=None):
        scored = [
            (p, _cosine(vector, p.vector or []))
            for p in self.passages.values()
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            EvidencePassage.from_passage(p, EvidenceOrigin.SEMANTIC, score=score)
            for p, score in scored[:limit]
        ]

    async def get_passages(self, chunk_ids):
        return [self.passages[cid] for cid in chunk_ids if cid in self.passages]

    async def add_passages(self, passages):
        for passage in passages:
            self.passages[passage.chunk_id] = passage
        return len(passages)

    async def list_passages(self, doc_id=None, limit=None):
        rows = sorted(
            (p for p in self.passages.values() if doc_id is None or p.doc_id == doc_id),
            key=lambda p: (p.doc_id, p.position),
        )
        return rows[:limit] if limit is not None else rows

    async def delete_document(self, doc_id):
        doomed = [cid for cid, p in self.passages.items() if p.doc_id == doc_id]
        for cid in doomed:
            del self.passages[cid]
        return len(doomed)

    async def stats(self):
        return ChunkStats(
            total_chunks=len(self.passages),
            unique_documents=len({p.doc_id for p in self.passages.values()}),
        )


# -----------------------------------------------------------------------------
# Corpus
# -----------------------------------------------------------------------------

EXTRACTED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def corpus() -> list[Passage]:
    """Three passages from one document, one per page."""
    return [
        Passage(
            chunk_id="c1",
            doc_id="tech-news",
            source_title="Tech News",
            page_number=1,
            position=0,
            text="Sam Altman is the CEO of OpenAI.",
            vector=[1.0, 0.0, 0.0],
        ),
        Passage(
            chunk_id="c2",
            doc_id="tech-news",
            source_title="Tech News",
            page_number=2,
            position=1,
            text="OpenAI partnered with Microsoft to use Azure.",
            vector=[0.0, 1.0, 0.0],
        ),
        Passage(
            chunk_id="c3",
            doc_id="tech-news",
            source_title="Tech News",
            page_number=3,
            position=2,
            text="Microsoft invested billions in OpenAI. Satya Nadella leads Microsoft.",
            vector=[0.0, 0.0, 1.0],
        ),
    ]


@pytest.fixture
def chunk_store(corpus: list[Passage]) -> InMemoryChunkStore:
    return InMemoryChunkStore(corpus)


@pytest.fixture
def empty_chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def extraction_times() -> list[datetime]:
    """Strictly increasing provenance timestamps."""
    return [EXTRACTED_AT + timedelta(minutes=i) for i in range(10)]


# -----------------------------------------------------------------------------
# Providers and config
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_llm() -> MagicMock:
    """Create a mock LLM provider."""
    llm = MagicMock()
    llm.generate = AsyncMock(return_value="Sam Altman is the CEO of OpenAI.")
    llm.model_name = "test-model"
    return llm


@pytest.fixture
def mock_embeddings() -> MagicMock:
    """Create a mock embedding provider that points at passage c1."""
    embeddings = MagicMock()
    embeddings.embed = AsyncMock(side_effect=lambda texts: [[1.0, 0.0, 0.0] for _ in texts])
    embeddings.embed_single = AsyncMock(return_value=[1.0, 0.0, 0.0])
    embeddings.dimensions = 3
    embeddings.model_name = "test-embedding"
    return embeddings


@pytest.fixture
def config() -> KGConfig:
    """Create a test configuration."""
    return KGConfig(
        embedding_dimensions=3,
        default_top_k=1,
        default_graph_depth=2,
        generation_timeout=5.0,
        extraction_timeout=5.0,
        extraction_batch_size=2,
    )
