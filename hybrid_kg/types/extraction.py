"""
Extraction Types

Validated output of the entity extractor and the linker's bookkeeping.

Extraction Models:
    - ExtractedEntity: {name, type}
    - ExtractedRelationship: {from, from_type, type, to, to_type}
    - Extraction: All validated items for one passage, plus a diagnostic
    - PassageExtraction: A passage paired with its extraction

Summary Models:
    - BatchExtractionSummary: Totals for one extraction batch
    - LinkResult: Distinct entities/relationships stored by the linker
    - ExtractionRunSummary: Totals for a whole offline extraction run

Each item is validated on its own; one bad item never invalidates its
siblings. See EntityExtractor.decode().
"""

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from hybrid_kg.types.graph import EntityType, GraphStats, RelationshipType
from hybrid_kg.types.passages import Passage
from hybrid_kg.utils.text import clean_entity_name


def _require_name(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("name must be a string")
    cleaned = clean_entity_name(value)
    if not cleaned:
        raise ValueError("name is empty")
    return cleaned


def _require_entity_type(value: object) -> EntityType:
    parsed = EntityType.parse(value)
    if parsed is None:
        raise ValueError(f"entity type not allowed: {value!r}")
    return parsed


def _require_relationship_type(value: object) -> RelationshipType:
    parsed = RelationshipType.parse(value)
    if parsed is None:
        raise ValueError(f"relationship type not allowed: {value!r}")
    return parsed


EntityName = Annotated[str, BeforeValidator(_require_name)]
AllowedEntityType = Annotated[EntityType, BeforeValidator(_require_entity_type)]
AllowedRelationshipType = Annotated[
    RelationshipType, BeforeValidator(_require_relationship_type)
]


class ExtractedEntity(BaseModel):
    """An entity mention as returned by the extraction call."""

    name: EntityName
    type: AllowedEntityType


class ExtractedRelationship(BaseModel):
    """A relationship mention as returned by the extraction call."""

    source: EntityName = Field(alias="from")
    source_type: AllowedEntityType = Field(alias="from_type")
    type: AllowedRelationshipType
    target: EntityName = Field(alias="to")
    target_type: AllowedEntityType = Field(alias="to_type")

    model_config = ConfigDict(populate_by_name=True)


class Extraction(BaseModel):
    """
    Validated extraction for one passage.

    Attributes:
        entities: Entities that passed validation
        relationships: Relationships that passed validation
        error: Diagnostic when the call timed out or the output was undecodable
        dropped: Number of raw items rejected by validation
    """

    entities: list[ExtractedEntity] = []
    relationships: list[ExtractedRelationship] = []
    error: str | None = None
    dropped: int = 0

    @classmethod
    def empty(cls, error: str | None = None) -> "Extraction":
        return cls(error=error)

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.relationships


class PassageExtraction(BaseModel):
    passage: Passage
    extraction: Extraction


class BatchExtractionSummary(BaseModel):
    """Totals for one batch of sequential extractions."""

    processed: int = 0
    entities: int = 0
    relationships: int = 0
    errors: int = 0
    results: list[PassageExtraction] = []


class LinkResult(BaseModel):
    """Distinct entity and relationship keys stored for one passage."""

    entities: int = 0
    relationships: int = 0


class ExtractionRunSummary(BaseModel):
    """
    Totals for a whole offline extraction run.

    Attributes:
        processed: Passages sent to the extractor
        entities: Entities extracted (before dedup)
        relationships: Relationships extracted (before dedup)
        errors: Passages whose extraction failed, timed out or was undecodable
        stored_entities: Entity keys written by the linker
        stored_relationships: Relationship keys written by the linker
        graph: Graph counters after the run
    """

    processed: int = 0
    entities: int = 0
    relationships: int = 0
    errors: int = 0
    stored_entities: int = 0
    stored_relationships: int = 0
    graph: GraphStats = Field(default_factory=GraphStats)
