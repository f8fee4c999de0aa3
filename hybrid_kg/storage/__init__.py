"""
Storage Layer

Modules:
    base: ChunkStore and GraphStore interfaces
    lancedb: LanceDB-backed chunk store
    duckdb: DuckDB-backed graph store
"""

from hybrid_kg.storage.base import MAX_NEIGHBORS_PER_ENTITY, ChunkStore, GraphStore

__all__ = ["MAX_NEIGHBORS_PER_ENTITY", "ChunkStore", "GraphStore"]
