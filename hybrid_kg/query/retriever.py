"""
Hybrid Retriever

Combines vector search over passages with bounded graph traversal.

Steps:
    1. Semantic: embed the query, nearest-neighbour search for top_k passages
    2. Resolve: entity names in those passages (provenance first, then a
       whole-word name scan as fallback)
    3. Expand: traverse up to graph_depth hops from each name, capped per
       entity, deduplicating discovered entities by (type, name)
    4. Resolve passages: fetch passages supporting the discovered entities
    5. Merge: semantic passages first, then graph passages not already
       present, keyed by chunk_id
    6. Paths: one {from, to, depth} record per traversal result

Failure policy:
    Only step 1 may raise (embedding backend or chunk store unreachable).
    Store errors in later steps are logged and the step contributes
    nothing; one entity's failed expansion never affects the others.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hybrid_kg.errors import StoreError
from hybrid_kg.storage.base import MAX_NEIGHBORS_PER_ENTITY
from hybrid_kg.types import (
    EvidenceOrigin,
    EvidencePassage,
    Neighbor,
    RelationshipPath,
    RetrievalResult,
)
from hybrid_kg.utils.text import find_mentions, normalize_name

if TYPE_CHECKING:
    from hybrid_kg.config.settings import KGConfig
    from hybrid_kg.providers.base import EmbeddingProvider
    from hybrid_kg.storage.base import ChunkStore, GraphStore

logger = logging.getLogger(__name__)

# Passages fetched per discovered entity, most recent provenance first
PASSAGES_PER_ENTITY = 3


class HybridRetriever:
    """
    Semantic search plus graph expansion over injected stores.

    Args:
        chunks: Chunk store (vector search and lookup by id)
        graph: Graph store (provenance lookup and traversal)
        embeddings: Embedding provider for the query vector
        config: Supplies default_top_k and default_graph_depth
    """

    def __init__(
        self,
        chunks: "ChunkStore",
        graph: "GraphStore",
        embeddings: "EmbeddingProvider",
        config: "KGConfig | None" = None,
    ) -> None:
        self.chunks = chunks
        self.graph = graph
        self.embeddings = embeddings
        self.default_top_k = config.default_top_k if config else 5
        self.default_graph_depth = config.default_graph_depth if config else 2

    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        graph_depth: int | None = None,
    ) -> RetrievalResult:
        """
        Build the evidence set for `query`.

        Args:
            query: Natural-language question
            top_k: Semantic hits to request (config default if None)
            graph_depth: Max hops of expansion; 0 returns the semantic hits only

        Returns:
            RetrievalResult (empty when vector search finds nothing)

        Raises:
            ProviderError: If the query cannot be embedded
            StoreError: If vector search fails
        """
        top_k = self.default_top_k if top_k is None else top_k
        graph_depth = self.default_graph_depth if graph_depth is None else graph_depth

        # Step 1: semantic hits
        vector = await self.embeddings.embed_single(query)
        semantic = await self.chunks.search(vector, top_k)
        logger.info(f"Vector search returned {len(semantic)} passages (top_k={top_k})")

        if not semantic:
            return RetrievalResult(query=query)
        if graph_depth <= 0:
            return RetrievalResult(query=query, semantic=semantic)

        # Step 2: entity names in the hits
        names = await self._resolve_entities(semantic)
        if not names:
            logger.info("No entities found in semantic hits, skipping graph expansion")
            return RetrievalResult(query=query, semantic=semantic)

        # Step 3: traversal
        discovered, paths = await self._expand(names, graph_depth)

        # Steps 4-5: graph passages not already present
        graph_passages = await self._resolve_passages(
            discovered,
            exclude={p.chunk_id for p in semantic},
        )

        logger.info(
            f"Hybrid retrieval: {len(semantic)} semantic + {len(graph_passages)} graph passages, "
            f"{len(discovered)} related entities, {len(paths)} paths"
        )
        return RetrievalResult(
            query=query,
            semantic=semantic,
            graph=graph_passages,
            paths=paths,
            entities=names,
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _resolve_entities(self, passages: list[EvidencePassage]) -> list[str]:
        """
        Entity names mentioned in `passages`.

        Linked provenance is authoritative. Only when no passage has linked
        entities is every known name matched against the passage text.
        """
        try:
            linked = await self.graph.entities_for_passages([p.chunk_id for p in passages])
            if linked:
                return linked
            known = await self.graph.all_entity_names()
        except StoreError as e:
            logger.warning(f"Entity resolution failed, continuing without graph: {e}")
            return []

        names: list[str] = []
        seen: set[str] = set()
        for passage in passages:
            for name in find_mentions(passage.text, known):
                key = normalize_name(name)
                if key not in seen:
                    seen.add(key)
                    names.append(name)

        logger.debug(f"Name scan matched {len(names)} of {len(known)} known entities")
        return names

    async def _expand(
        self,
        names: list[str],
        depth: int,
    ) -> tuple[list[Neighbor], list[RelationshipPath]]:
        """Traverse from each name; returns (unique neighbours, paths)."""
        discovered: dict[tuple[str, str], Neighbor] = {}
        paths: list[RelationshipPath] = []

        for name in names:
            try:
                neighbors = await self.graph.neighborhood(
                    name, depth, limit=MAX_NEIGHBORS_PER_ENTITY
                )
            except StoreError as e:
                logger.warning(f"Could not expand entity '{name}': {e}")
                continue

            # Store-side limits are advisory; enforce the cap here too
            for neighbor in neighbors[:MAX_NEIGHBORS_PER_ENTITY]:
                paths.append(
                    RelationshipPath(
                        source=name,
                        target=neighbor.name,
                        depth=neighbor.hops,
                        relations=neighbor.relations,
                    )
                )
                if neighbor.key not in discovered:
                    discovered[neighbor.key] = neighbor

        return list(discovered.values()), paths

    async def _resolve_passages(
        self,
        entities: list[Neighbor],
        exclude: set[str],
    ) -> list[EvidencePassage]:
        """Fetch passages supporting `entities`, skipping ids in `exclude`."""
        wanted: list[str] = []
        seen = set(exclude)
        for entity in entities:
            for chunk_id in entity.chunk_ids[:PASSAGES_PER_ENTITY]:
                if chunk_id not in seen:
                    seen.add(chunk_id)
                    wanted.append(chunk_id)

        if not wanted:
            return []

        try:
            passages = await self.chunks.get_passages(wanted)
        except StoreError as e:
            logger.warning(f"Could not load graph passages: {e}")
            return []

        wanted_set = set(wanted)
        output: list[EvidencePassage] = []
        for passage in passages:
            if passage.chunk_id in wanted_set:
                wanted_set.discard(passage.chunk_id)
                output.append(EvidencePassage.from_passage(passage, EvidenceOrigin.GRAPH))
        return output


def rank_passages(
    passages: list[EvidencePassage],
    *,
    vector_weight: float = 0.7,
    graph_bonus: float = 0.3,
) -> list[EvidencePassage]:
    """
    Order passages for presentation.

    combined_score = score * vector_weight (when scored) + graph_bonus (when
    graph-origin). Returns copies; the input list and its membership are
    untouched. Ties keep their original order.
    """
    scored = []
    for passage in passages:
        combined = 0.0
        if passage.score is not None:
            combined += passage.score * vector_weight
        if passage.from_graph:
            combined += graph_bonus
        scored.append(passage.model_copy(update={"combined_score": combined}))
    return sorted(scored, key=lambda p: p.combined_score or 0.0, reverse=True)
