"""
DuckDB Storage

Modules:
    graph_store: DuckDBGraphStore (idempotent upsert and bounded traversal)
"""

from hybrid_kg.storage.duckdb.graph_store import DuckDBGraphStore

__all__ = ["DuckDBGraphStore"]
