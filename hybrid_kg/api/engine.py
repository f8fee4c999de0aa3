"""
HybridKG - Primary Entry Point

The HybridKG class manages a knowledge base directory and owns the store
and provider handles used for indexing, graph extraction and querying.

A knowledge base is a self-contained directory containing:
    - lancedb/: Passage vector index
    - graph.duckdb: Entity/relationship graph with provenance

Example:
    >>> async with HybridKG("./kb") as kg:
    ...     result = await kg.query("Who leads OpenAI?", top_k=2, graph_depth=1)
    ...     print(result.answer)

    # Or with sync API
    >>> kg = HybridKG("./kb")
    >>> result = kg.query_sync("Who leads OpenAI?")

Store and provider handles may be injected (tests, shared connections).
Injected stores are owned by the caller and are not closed by close().
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hybrid_kg.config.settings import KGConfig
    from hybrid_kg.providers.base import EmbeddingProvider, LLMProvider
    from hybrid_kg.query import QueryOrchestrator
    from hybrid_kg.storage.base import ChunkStore, GraphStore
    from hybrid_kg.types import (
        ExtractionRunSummary,
        Passage,
        QueryResult,
        VerificationResult,
    )

logger = logging.getLogger(__name__)


class HybridKG:
    """
    A hybrid vector + graph knowledge base.

    Args:
        path: Directory for the knowledge base.
        config: Optional configuration. Uses defaults if not provided.
        create: If True, create directory if missing. Default True.
        llm: Optional LLM provider (built from config if omitted)
        embeddings: Optional embedding provider (built from config if omitted)
        chunks: Optional chunk store handle (caller-owned)
        graph: Optional graph store handle (caller-owned)
    """

    def __init__(
        self,
        path: str | Path,
        config: "KGConfig | None" = None,
        create: bool = True,
        *,
        llm: "LLMProvider | None" = None,
        embeddings: "EmbeddingProvider | None" = None,
        chunks: "ChunkStore | None" = None,
        graph: "GraphStore | None" = None,
    ) -> None:
        self._path = Path(path).resolve()
        self._create = create

        if config is None:
            from hybrid_kg.config import KGConfig
            config = KGConfig()
        self._config = config

        self._llm = llm
        self._embeddings = embeddings
        self._chunks = chunks
        self._graph = graph
        self._owns_chunks = chunks is None
        self._owns_graph = graph is None
        self._orchestrator: "QueryOrchestrator | None" = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Open stores and build providers on first use."""
        if self._initialized:
            return

        if self._create:
            self._path.mkdir(parents=True, exist_ok=True)
        elif not self._path.exists():
            raise FileNotFoundError(f"Knowledge base not found: {self._path}")

        if self._chunks is None:
            from hybrid_kg.storage.lancedb import LanceDBChunkStore
            self._chunks = LanceDBChunkStore(self._path / "lancedb", self._config)
        if self._graph is None:
            from hybrid_kg.storage.duckdb import DuckDBGraphStore
            self._graph = DuckDBGraphStore(self._path / self._config.graph_db_file)

        await self._chunks.initialize()
        await self._graph.initialize()

        if self._llm is None:
            self._llm = self._create_llm_provider()
        if self._embeddings is None:
            self._embeddings = self._create_embedding_provider()

        self._initialized = True
        logger.debug(f"Knowledge base ready at {self._path}")

    def _create_llm_provider(self) -> "LLMProvider":
        """Create LLM provider based on config."""
        provider = self._config.llm_provider.lower()

        if provider == "openai":
            from hybrid_kg.providers.llm.openai import OpenAILLMProvider
            return OpenAILLMProvider(
                api_key=self._config.openai_api_key,
                model=self._config.llm_model,
                base_url=self._config.llm_base_url,
            )
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

    def _create_embedding_provider(self) -> "EmbeddingProvider":
        """Create embedding provider based on config."""
        provider = self._config.embedding_provider.lower()

        if provider == "openai":
            from hybrid_kg.providers.embedding.openai import OpenAIEmbeddingProvider
            return OpenAIEmbeddingProvider(
                api_key=self._config.openai_api_key,
                model=self._config.embedding_model,
                dimensions=self._config.embedding_dimensions,
                base_url=self._config.llm_base_url,
            )
        else:
            raise ValueError(f"Unknown embedding provider: {provider}")

    def _get_orchestrator(self) -> "QueryOrchestrator":
        assert self._chunks is not None
        assert self._graph is not None
        assert self._llm is not None
        assert self._embeddings is not None

        if self._orchestrator is None:
            from hybrid_kg.query import HybridRetriever, QueryOrchestrator

            retriever = HybridRetriever(
                self._chunks, self._graph, self._embeddings, self._config
            )
            self._orchestrator = QueryOrchestrator(retriever, self._llm, self._config)
        return self._orchestrator

    # === Lifecycle ===

    async def __aenter__(self) -> "HybridKG":
        await self._ensure_initialized()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release owned resources."""
        if self._owns_chunks and self._chunks is not None:
            await self._chunks.close()
            self._chunks = None
        if self._owns_graph and self._graph is not None:
            await self._graph.close()
            self._graph = None
        self._orchestrator = None
        self._initialized = False

    # === Properties ===

    @property
    def path(self) -> Path:
        """Path to the knowledge base directory."""
        return self._path

    @property
    def config(self) -> "KGConfig":
        """Current configuration."""
        return self._config

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # === Indexing ===

    async def add_passages(self, passages: list["Passage"]) -> int:
        """
        Index passages, embedding any that arrive without a vector.

        Returns:
            Number of passages written
        """
        await self._ensure_initialized()
        assert self._chunks is not None
        assert self._embeddings is not None

        missing = [p for p in passages if p.vector is None]
        if missing:
            vectors = await self._embeddings.embed([p.text for p in missing])
            by_id = {p.chunk_id: v for p, v in zip(missing, vectors)}
            passages = [
                p if p.vector is not None else p.model_copy(update={"vector": by_id[p.chunk_id]})
                for p in passages
            ]

        written = await self._chunks.add_passages(passages)
        logger.info(f"Indexed {written} passages ({len(missing)} embedded)")
        return written

    async def delete_document(self, doc_id: str) -> int:
        """Remove a document's passages from the index. Returns the count removed."""
        await self._ensure_initialized()
        assert self._chunks is not None
        return await self._chunks.delete_document(doc_id)

    # === Graph Extraction ===

    async def extract(
        self,
        *,
        doc_id: str | None = None,
        limit: int | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> "ExtractionRunSummary":
        """
        Build the graph from indexed passages.

        Args:
            doc_id: Only process this document
            limit: Process at most this many passages
            on_progress: Called with (done, total)
        """
        await self._ensure_initialized()
        assert self._chunks is not None
        assert self._graph is not None
        assert self._llm is not None

        from hybrid_kg.ingestion import ExtractionPipeline

        pipeline = ExtractionPipeline(self._chunks, self._graph, self._llm, self._config)
        return await pipeline.run(doc_id=doc_id, limit=limit, on_progress=on_progress)

    # === Query Methods ===

    async def query(
        self,
        question: str,
        *,
        top_k: int | None = None,
        graph_depth: int | None = None,
    ) -> "QueryResult":
        """
        Answer a question from hybrid evidence.

        Args:
            question: Natural language question
            top_k: Semantic hits (config default if None)
            graph_depth: Graph expansion depth, 0 for vector-only (config default if None)

        Returns:
            QueryResult with answer, citations, graph paths, stats and timing

        Raises:
            StoreConnectionError: If a store is unreachable
            ProviderError: If the question cannot be embedded
        """
        await self._ensure_initialized()
        return await self._get_orchestrator().query(
            question, top_k=top_k, graph_depth=graph_depth
        )

    async def query_vector_only(
        self, question: str, *, top_k: int | None = None
    ) -> "QueryResult":
        """Answer from semantic hits only."""
        await self._ensure_initialized()
        return await self._get_orchestrator().query_vector_only(question, top_k=top_k)

    async def verify_answer(self, result: "QueryResult") -> "VerificationResult":
        """Check whether a result's answer is supported by its evidence."""
        await self._ensure_initialized()
        return await self._get_orchestrator().verify_answer(result)

    def query_sync(self, question: str, **kwargs: Any) -> "QueryResult":
        """Synchronous version of query()."""
        return asyncio.run(self.query(question, **kwargs))

    # === Statistics ===

    async def stats(self) -> dict[str, Any]:
        """Chunk and graph counters."""
        await self._ensure_initialized()
        assert self._chunks is not None
        assert self._graph is not None

        chunk_stats = await self._chunks.stats()
        graph_stats = await self._graph.stats()
        return {
            "chunks": chunk_stats.total_chunks,
            "documents": chunk_stats.unique_documents,
            "nodes": graph_stats.nodes,
            "relationships": graph_stats.relationships,
            "node_types": graph_stats.node_types,
        }

    def stats_sync(self) -> dict[str, Any]:
        """Synchronous version of stats()."""
        return asyncio.run(self.stats())
