"""
Ingestion Pipeline

Builds the knowledge graph from indexed passages.

Modules:
    extraction: Passage -> validated entities and relationships
    linking: Extraction -> graph nodes/edges with provenance
    pipeline: Batched offline run over the chunk store
"""

from hybrid_kg.ingestion.extraction import EntityExtractor
from hybrid_kg.ingestion.linking import GraphLinker
from hybrid_kg.ingestion.pipeline import ExtractionPipeline

__all__ = ["EntityExtractor", "ExtractionPipeline", "GraphLinker"]
