"""
Type Definitions

Pydantic models for all data structures.

Storage Models:
    - Passage, ChunkStats - Indexed passages
    - Entity, Relationship, ProvenanceRef, GraphStats - Graph contents
    - EntityType, RelationshipType - Allow-listed labels

Extraction Models:
    - ExtractedEntity, ExtractedRelationship, Extraction - Validated extractor output
    - BatchExtractionSummary, LinkResult, ExtractionRunSummary - Ingestion totals

Query Models:
    - EvidencePassage, EvidenceOrigin, Citation - Evidence set members
    - Neighbor, RelationshipPath - Traversal output
    - RetrievalResult, QueryResult, QueryState, QueryStats - Query output
    - VerificationResult, VerificationVerdict - Answer verification
"""

from hybrid_kg.types.extraction import (
    BatchExtractionSummary,
    ExtractedEntity,
    ExtractedRelationship,
    Extraction,
    ExtractionRunSummary,
    LinkResult,
    PassageExtraction,
)
from hybrid_kg.types.graph import (
    Entity,
    EntityType,
    GraphStats,
    Neighbor,
    ProvenanceRef,
    Relationship,
    RelationshipPath,
    RelationshipType,
)
from hybrid_kg.types.passages import (
    ChunkStats,
    Citation,
    EvidenceOrigin,
    EvidencePassage,
    Passage,
)
from hybrid_kg.types.results import (
    QueryResult,
    QueryState,
    QueryStats,
    RetrievalResult,
    VerificationResult,
    VerificationVerdict,
)

__all__ = [
    # Passages
    "Passage",
    "ChunkStats",
    "EvidenceOrigin",
    "EvidencePassage",
    "Citation",
    # Graph
    "Entity",
    "EntityType",
    "GraphStats",
    "Neighbor",
    "ProvenanceRef",
    "Relationship",
    "RelationshipPath",
    "RelationshipType",
    # Extraction
    "BatchExtractionSummary",
    "ExtractedEntity",
    "ExtractedRelationship",
    "Extraction",
    "ExtractionRunSummary",
    "LinkResult",
    "PassageExtraction",
    # Results
    "QueryResult",
    "QueryState",
    "QueryStats",
    "RetrievalResult",
    "VerificationResult",
    "VerificationVerdict",
]
