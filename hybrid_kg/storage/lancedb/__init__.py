"""
LanceDB Storage

Modules:
    chunk_store: LanceDBChunkStore (vector search and lookup over passages)
"""

from hybrid_kg.storage.lancedb.chunk_store import LanceDBChunkStore

__all__ = ["LanceDBChunkStore"]
