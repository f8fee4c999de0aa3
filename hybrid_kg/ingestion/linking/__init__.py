"""
Linking Module

Modules:
    linker: GraphLinker (idempotent upsert with provenance)
"""

from hybrid_kg.ingestion.linking.linker import GraphLinker

__all__ = ["GraphLinker"]
