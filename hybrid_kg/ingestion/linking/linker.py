"""
Graph Linker

Persists one passage's validated extraction into the graph store, with a
provenance reference on every node and edge it touches.

Pipeline per passage:
    1. Entities: merge by (type, normalized name), attach provenance
    2. Relationships: merge both endpoints, then the edge, attach provenance

Re-linking the same extraction is harmless: every write is an idempotent
merge and provenance is only ever appended.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from hybrid_kg.types import Extraction, LinkResult, Passage, ProvenanceRef
from hybrid_kg.utils.text import normalize_name

if TYPE_CHECKING:
    from hybrid_kg.storage.base import GraphStore

logger = logging.getLogger(__name__)


class GraphLinker:
    """
    Writes extractions into a GraphStore.

    Args:
        graph: Graph store handle (owned by the caller)
    """

    def __init__(self, graph: "GraphStore") -> None:
        self.graph = graph

    async def link(
        self,
        passage: Passage,
        extraction: Extraction,
        *,
        extracted_at: datetime | None = None,
    ) -> LinkResult:
        """
        Store an extraction for `passage`.

        Args:
            passage: Source passage (provides doc_id and chunk_id)
            extraction: Validated extraction for that passage
            extracted_at: Provenance timestamp (defaults to now, UTC)

        Returns:
            LinkResult counting distinct entity and relationship keys stored,
            relationship endpoints included

        Raises:
            StoreError: If the graph store rejects a write
            ValueError: If the store rejects an entity name
        """
        provenance = ProvenanceRef(
            doc_id=passage.doc_id,
            chunk_id=passage.chunk_id,
            extracted_at=extracted_at or datetime.now(timezone.utc),
        )

        entity_keys: set[tuple[str, str]] = set()
        relationship_keys: set[tuple[tuple[str, str], str, tuple[str, str]]] = set()

        try:
            for entity in extraction.entities:
                key = (entity.type.value, normalize_name(entity.name))
                if key in entity_keys:
                    continue
                await self.graph.upsert_entity(entity.type, entity.name, provenance)
                entity_keys.add(key)

            for rel in extraction.relationships:
                source_key = (rel.source_type.value, normalize_name(rel.source))
                target_key = (rel.target_type.value, normalize_name(rel.target))
                key = (source_key, rel.type.value, target_key)
                if key in relationship_keys:
                    continue
                await self.graph.upsert_relationship(
                    rel.source_type,
                    rel.source,
                    rel.type,
                    rel.target_type,
                    rel.target,
                    provenance,
                )
                relationship_keys.add(key)
                entity_keys.update((source_key, target_key))
        except Exception as e:
            logger.error(f"Linking passage {passage.chunk_id} failed: {e}")
            raise

        result = LinkResult(entities=len(entity_keys), relationships=len(relationship_keys))
        logger.debug(
            f"Linked passage {passage.chunk_id}: "
            f"{result.entities} entities, {result.relationships} relationships"
        )
        return result
