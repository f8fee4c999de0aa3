"""
Graph Types

Entities and relationships persisted in the knowledge graph.

Storage Models:
    - EntityType: Allow-listed entity labels
    - RelationshipType: Allow-listed relationship labels
    - ProvenanceRef: (document, passage, timestamp) supporting a node or edge
    - Entity: A graph node with its accumulated provenance
    - Relationship: A directed, typed edge with its accumulated provenance
    - GraphStats: Node/edge counters

Traversal Models:
    - Neighbor: An entity reached from a starting entity
    - RelationshipPath: Human-facing {from, to, depth} record

Only labels from the allow-lists ever reach the graph store. Anything else
is rejected at extraction time.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from hybrid_kg.utils.text import normalize_name, normalize_relationship_type


class EntityType(str, Enum):
    """Entity labels accepted into the graph."""

    PERSON = "Person"
    COMPANY = "Company"
    PRODUCT = "Product"
    FIELD = "Field"

    @classmethod
    def parse(cls, value: object) -> "EntityType | None":
        """Map a free-form label onto the allow-list (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().casefold()
        for member in cls:
            if member.value.casefold() == wanted:
                return member
        return None


class RelationshipType(str, Enum):
    """Relationship labels accepted into the graph."""

    CEO_OF = "CEO_OF"
    FOUNDED = "FOUNDED"
    WORKS_ON = "WORKS_ON"
    INVESTED_IN = "INVESTED_IN"
    PARTNERED_WITH = "PARTNERED_WITH"
    DEVELOPED = "DEVELOPED"
    RELATED_TO = "RELATED_TO"

    @classmethod
    def parse(cls, value: object) -> "RelationshipType | None":
        """Map a free-form label ("partnered with") onto the allow-list."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(normalize_relationship_type(value))
        except ValueError:
            return None


class ProvenanceRef(BaseModel):
    """The passage an entity or relationship was extracted from."""

    doc_id: str
    chunk_id: str
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class Entity(BaseModel):
    """
    A node in the knowledge graph.

    Identity is (entity_type, normalized name). The display name is the
    first spelling seen; later spellings only add provenance.
    """

    name: str
    entity_type: EntityType
    provenance: list[ProvenanceRef] = []

    @property
    def key(self) -> tuple[str, str]:
        """Identity key: (type, normalized name)."""
        return (self.entity_type.value, normalize_name(self.name))


class Relationship(BaseModel):
    """A directed, typed edge in the knowledge graph."""

    source: str
    source_type: EntityType
    relationship_type: RelationshipType
    target: str
    target_type: EntityType
    provenance: list[ProvenanceRef] = []

    @property
    def key(self) -> tuple[tuple[str, str], str, tuple[str, str]]:
        """Identity key: (from-entity, relationship type, to-entity)."""
        return (
            (self.source_type.value, normalize_name(self.source)),
            self.relationship_type.value,
            (self.target_type.value, normalize_name(self.target)),
        )


class Neighbor(BaseModel):
    """
    An entity discovered by traversal.

    Attributes:
        name: Display name of the discovered entity
        entity_type: Its label
        hops: Shortest hop count from the starting entity
        relations: Relationship labels along that shortest path
        chunk_ids: Passages supporting the entity, most recent first
    """

    name: str
    entity_type: EntityType
    hops: int
    relations: list[str] = []
    chunk_ids: list[str] = []

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_type.value, normalize_name(self.name))


class RelationshipPath(BaseModel):
    """
    A transient {from, to, depth} record for explanation.

    Serialize with ``model_dump(by_alias=True)`` to get the wire names.
    """

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    depth: int
    relations: list[str] = []

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, str | int]:
        return {"from": self.source, "to": self.target, "depth": self.depth}


class GraphStats(BaseModel):
    """Node/edge counters for the knowledge graph."""

    nodes: int = 0
    relationships: int = 0
    node_types: dict[str, int] = {}
