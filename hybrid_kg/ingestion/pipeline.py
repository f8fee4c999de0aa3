"""
Extraction Pipeline

Offline run that builds the knowledge graph from passages already in the
chunk store:

    1. Read passages (optionally one document, optionally capped)
    2. Extract entities/relationships batch by batch (sequential)
    3. Link each non-empty extraction into the graph with provenance
    4. Report totals and graph counters

A passage whose extraction or linking fails is counted and skipped; the
run continues with the next passage.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from hybrid_kg.errors import StoreError
from hybrid_kg.ingestion.extraction import EntityExtractor
from hybrid_kg.ingestion.linking import GraphLinker
from hybrid_kg.types import ExtractionRunSummary

if TYPE_CHECKING:
    from hybrid_kg.config.settings import KGConfig
    from hybrid_kg.providers.base import LLMProvider
    from hybrid_kg.storage.base import ChunkStore, GraphStore

logger = logging.getLogger(__name__)


class ExtractionPipeline:
    """
    Chunk store -> extractor -> linker -> graph store.

    Args:
        chunks: Chunk store to read passages from
        graph: Graph store to write into
        llm: LLM provider for extraction
        config: Supplies extraction_batch_size and extractor settings
    """

    def __init__(
        self,
        chunks: "ChunkStore",
        graph: "GraphStore",
        llm: "LLMProvider",
        config: "KGConfig | None" = None,
    ) -> None:
        self.chunks = chunks
        self.graph = graph
        self.extractor = EntityExtractor(llm, config)
        self.linker = GraphLinker(graph)
        self.batch_size = config.extraction_batch_size if config else 10

    async def run(
        self,
        *,
        doc_id: str | None = None,
        limit: int | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ExtractionRunSummary:
        """
        Extract and link every selected passage.

        Args:
            doc_id: Only process this document
            limit: Process at most this many passages
            on_progress: Called with (done, total) after each passage

        Returns:
            ExtractionRunSummary with extraction totals and graph counters

        Raises:
            StoreError: If passages cannot be listed or graph stats read
        """
        start = time.perf_counter_ns()
        passages = await self.chunks.list_passages(doc_id=doc_id, limit=limit)
        total = len(passages)
        summary = ExtractionRunSummary()
        logger.info(f"Extracting from {total} passages in batches of {self.batch_size}")

        for offset in range(0, total, self.batch_size):
            batch = passages[offset : offset + self.batch_size]

            def report(done: int, _: int, offset: int = offset) -> None:
                if on_progress:
                    on_progress(offset + done, total)

            batch_summary = await self.extractor.extract_batch(batch, on_progress=report)
            summary.processed += batch_summary.processed
            summary.entities += batch_summary.entities
            summary.relationships += batch_summary.relationships
            summary.errors += batch_summary.errors

            for item in batch_summary.results:
                if item.extraction.is_empty:
                    continue
                try:
                    linked = await self.linker.link(item.passage, item.extraction)
                except (StoreError, ValueError) as e:
                    logger.warning(f"Skipping passage {item.passage.chunk_id}: {e}")
                    summary.errors += 1
                    continue
                summary.stored_entities += linked.entities
                summary.stored_relationships += linked.relationships

        summary.graph = await self.graph.stats()

        elapsed_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(
            f"Extraction run complete in {elapsed_ms}ms: {summary.processed} passages, "
            f"{summary.errors} errors, graph has {summary.graph.nodes} nodes / "
            f"{summary.graph.relationships} relationships"
        )
        return summary
