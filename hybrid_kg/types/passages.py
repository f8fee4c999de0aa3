"""
Passage Types

Passages (a.k.a. chunks) are the immutable units of indexed text.

Storage Models:
    - Passage: Indexed passage with document/page provenance
    - ChunkStats: Chunk store counters

Query Models:
    - EvidenceOrigin: Where an evidence passage came from
    - EvidencePassage: A passage as it appears in a query's evidence set
    - Citation: A (document, page) reference surfaced to the caller
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Passage(BaseModel):
    """
    An indexed text passage.

    Attributes:
        chunk_id: Unique passage identifier
        doc_id: Parent document identifier
        source_title: Human-readable title of the source document
        page_number: Page the passage was taken from, when known
        position: Ordinal position within the document (0-indexed)
        text: Raw passage text
        vector: Semantic vector (only set when writing to the index)

    Passages are created once at ingestion and never mutated.
    """

    chunk_id: str
    doc_id: str
    source_title: str = "Unknown"
    page_number: int | None = None
    position: int = 0
    text: str
    vector: list[float] | None = None

    model_config = ConfigDict(frozen=True)


class EvidenceOrigin(str, Enum):
    """How a passage entered the evidence set."""

    SEMANTIC = "semantic"
    GRAPH = "graph"


class EvidencePassage(BaseModel):
    """
    A passage inside one query's evidence set.

    Attributes:
        score: Similarity score from vector search (None for graph passages)
        origin: semantic or graph
        combined_score: Presentation score, only set by rank_passages()
    """

    chunk_id: str
    doc_id: str
    source_title: str = "Unknown"
    page_number: int | None = None
    position: int = 0
    text: str
    score: float | None = None
    origin: EvidenceOrigin = EvidenceOrigin.SEMANTIC
    combined_score: float | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_passage(
        cls,
        passage: Passage,
        origin: EvidenceOrigin,
        score: float | None = None,
    ) -> "EvidencePassage":
        """Wrap a stored passage as evidence."""
        return cls(
            chunk_id=passage.chunk_id,
            doc_id=passage.doc_id,
            source_title=passage.source_title,
            page_number=passage.page_number,
            position=passage.position,
            text=passage.text,
            score=score,
            origin=origin,
        )

    @property
    def from_graph(self) -> bool:
        """Whether this passage was reached through graph expansion."""
        return self.origin == EvidenceOrigin.GRAPH


class Citation(BaseModel):
    """One cited (document, page) pair."""

    source_title: str
    page_number: int | None = None
    doc_id: str
    chunk_id: str


class ChunkStats(BaseModel):
    """Chunk store counters."""

    total_chunks: int = 0
    unique_documents: int = 0
