"""
Result Types

Types produced by retrieval and by the query orchestrator.

Retrieval Models:
    - RetrievalResult: Merged evidence set plus relationship paths

Query Models:
    - QueryState: Orchestrator state machine
    - QueryStats: Evidence counters
    - QueryResult: Final answer with citations and paths
    - VerificationVerdict / VerificationResult: Answer-support check
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from hybrid_kg.types.graph import RelationshipPath
from hybrid_kg.types.passages import Citation, EvidencePassage

# -----------------------------------------------------------------------------
# Retrieval Models
# -----------------------------------------------------------------------------


class RetrievalResult(BaseModel):
    """
    Output of one hybrid retrieval.

    Attributes:
        query: The query string
        semantic: Passages from vector search, in similarity order
        graph: Graph-discovered passages not already in `semantic`
        paths: Relationship paths, in traversal discovery order
        entities: Entity names resolved from the semantic hits
    """

    query: str
    semantic: list[EvidencePassage] = []
    graph: list[EvidencePassage] = []
    paths: list[RelationshipPath] = []
    entities: list[str] = []

    @property
    def passages(self) -> list[EvidencePassage]:
        """The merged evidence set: semantic first, then graph."""
        return [*self.semantic, *self.graph]

    @property
    def is_empty(self) -> bool:
        return not self.semantic and not self.graph


# -----------------------------------------------------------------------------
# Query Models
# -----------------------------------------------------------------------------


class QueryState(str, Enum):
    """Query orchestrator states."""

    IDLE = "idle"
    RETRIEVING = "retrieving"
    EMPTY_EVIDENCE = "empty_evidence"
    PROMPT_BUILDING = "prompt_building"
    GENERATING = "generating"
    ANSWERED = "answered"
    GENERATION_TIMED_OUT = "generation_timed_out"
    GENERATION_FAILED = "generation_failed"


class QueryStats(BaseModel):
    vector_chunks: int = 0
    graph_chunks: int = 0
    total_chunks: int = 0
    graph_path_count: int = 0


class QueryResult(BaseModel):
    """
    Result from a hybrid query.

    `query` and `answer` are always set. Citations and paths default to
    empty lists so callers never need to check for None.

    Attributes:
        query: The original question
        answer: Generated answer or a fixed fallback message
        state: Terminal orchestrator state
        citations: One per distinct (doc_id, page_number) in the evidence set
        graph_paths: Relationship paths discovered during retrieval
        passages: The evidence set the prompt was built from
        stats: Evidence counters
        timing: Milliseconds spent per phase
        error: Diagnostic for fallback answers
    """

    query: str
    answer: str
    state: QueryState = QueryState.ANSWERED
    citations: list[Citation] = []
    graph_paths: list[RelationshipPath] = []
    passages: list[EvidencePassage] = []
    stats: QueryStats = Field(default_factory=QueryStats)
    timing: dict[str, int] = {}
    error: str | None = None

    @property
    def total_time_ms(self) -> int:
        """Total query time in milliseconds."""
        return sum(self.timing.values())

    def to_payload(self) -> dict[str, Any]:
        """Render the wire response body (`data` of a successful request)."""
        return {
            "query": self.query,
            "answer": self.answer,
            "citations": [c.model_dump() for c in self.citations],
            "graphPaths": [p.to_payload() for p in self.graph_paths],
            "stats": {
                "vectorChunks": self.stats.vector_chunks,
                "graphChunks": self.stats.graph_chunks,
                "totalChunks": self.stats.total_chunks,
                "graphPathCount": self.stats.graph_path_count,
            },
        }


class VerificationVerdict(str, Enum):
    VERIFIED = "VERIFIED"
    PARTIAL = "PARTIAL"
    UNSUPPORTED = "UNSUPPORTED"
    UNKNOWN = "UNKNOWN"


class VerificationResult(BaseModel):
    """Whether an answer is supported by its evidence passages."""

    verdict: VerificationVerdict
    explanation: str = ""
