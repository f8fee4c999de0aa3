"""
Abstract Store Interfaces

Defines the contract for the two stores the engine depends on:

    ChunkStore: semantic index over passages (vector search, lookup by id)
    GraphStore: labelled property graph (idempotent upsert, bounded traversal)

Handles are owned by whoever creates them and injected into each
component's constructor. There is no module-level connection state.

Lifecycle:
    store = LanceDBChunkStore(path, config)
    await store.initialize()
    # ... operations ...
    await store.close()

Or using context manager:
    async with DuckDBGraphStore(path) as graph:
        await graph.upsert_entity(EntityType.PERSON, "Sam Altman", ref)
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from hybrid_kg.errors import StoreError

if TYPE_CHECKING:
    from hybrid_kg.types import (
        ChunkStats,
        Entity,
        EntityType,
        EvidencePassage,
        GraphStats,
        Neighbor,
        Passage,
        ProvenanceRef,
        Relationship,
        RelationshipType,
    )

logger = logging.getLogger(__name__)

# Hard cap on neighbours returned by one traversal call
MAX_NEIGHBORS_PER_ENTITY = 50


class ChunkStore(ABC):
    """Abstract interface for the passage index."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open the store. Raises StoreConnectionError if unreachable."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store and release resources."""
        ...

    async def __aenter__(self) -> "ChunkStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        limit: int,
        filter: str | None = None,
    ) -> list["EvidencePassage"]:
        """Nearest-neighbour search, best match first."""
        ...

    @abstractmethod
    async def get_passages(self, chunk_ids: list[str]) -> list["Passage"]:
        """Fetch passages by id, in request order. Unknown ids are skipped."""
        ...

    @abstractmethod
    async def add_passages(self, passages: list["Passage"]) -> int:
        """Index passages (each must carry a vector). Returns rows written."""
        ...

    @abstractmethod
    async def list_passages(
        self,
        doc_id: str | None = None,
        limit: int | None = None,
    ) -> list["Passage"]:
        """List passages, optionally for one document, in (doc, position) order."""
        ...

    @abstractmethod
    async def delete_document(self, doc_id: str) -> int:
        """Remove every passage of a document. Returns rows removed."""
        ...

    @abstractmethod
    async def stats(self) -> "ChunkStats":
        ...


class GraphStore(ABC):
    """Abstract interface for the knowledge graph."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open the store. Raises StoreConnectionError if unreachable."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def __aenter__(self) -> "GraphStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_entity(
        self,
        entity_type: "EntityType",
        name: str,
        provenance: "ProvenanceRef",
    ) -> "Entity":
        """
        Merge an entity by (type, normalized name) and attach provenance.

        Safe to call repeatedly; never overwrites existing provenance.
        """
        ...

    @abstractmethod
    async def upsert_relationship(
        self,
        source_type: "EntityType",
        source: str,
        relationship_type: "RelationshipType",
        target_type: "EntityType",
        target: str,
        provenance: "ProvenanceRef",
    ) -> "Relationship":
        """
        Merge an edge by (from, type, to) and attach provenance.

        Both endpoints are merged first so the edge never dangles.
        """
        ...

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_entity(self, entity_type: "EntityType", name: str) -> "Entity | None":
        ...

    @abstractmethod
    async def neighborhood(
        self,
        name: str,
        max_hops: int,
        limit: int = MAX_NEIGHBORS_PER_ENTITY,
    ) -> list["Neighbor"]:
        """
        Entities within `max_hops` undirected hops of every entity named `name`.

        Results are ordered by hop count, then discovery order, and never
        exceed `limit`.
        """
        ...

    @abstractmethod
    async def entities_for_passages(self, chunk_ids: list[str]) -> list[str]:
        """Names of entities whose provenance points at any of `chunk_ids`."""
        ...

    @abstractmethod
    async def all_entity_names(self) -> list[str]:
        ...

    @abstractmethod
    async def stats(self) -> "GraphStats":
        ...


# -----------------------------------------------------------------------------
# Error Mapping
# -----------------------------------------------------------------------------

P = ParamSpec("P")
R = TypeVar("R")


def store_errors(
    store: str,
    operation: str,
    *backend_errors: type[BaseException],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Decorator that re-raises backend exceptions as StoreError.

    StoreError subclasses raised inside the wrapped call pass through
    unchanged so connection failures keep their label.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except StoreError:
                raise
            except backend_errors as e:
                logger.error(f"{store} {operation} failed: {e}")
                raise StoreError(f"{store} {operation} failed: {e}") from e

        return wrapper

    return decorator
