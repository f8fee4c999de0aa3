"""
Prompt Assembler

Turns a retrieval result into a bounded, grounded answer prompt, and
derives citations from the evidence set.

Prompt layout:
    Answer using ONLY the information below. Be concise.

    KNOWLEDGE GRAPH:            (omitted without paths or in vector-only mode)
    1. A → B (1 hop)

    RETRIEVED DOCUMENTS:

    [Document 1] Title (page 3)
    passage text

    QUESTION:
    ...

    ANSWER:

Prompt size is bounded by max_chunks and max_paths regardless of how much
the retriever returned.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from hybrid_kg.types import Citation, EvidencePassage, RelationshipPath

if TYPE_CHECKING:
    from hybrid_kg.types import QueryResult, RetrievalResult

ANSWER_INSTRUCTION = "Answer using ONLY the information below. Be concise."

# Connections shown by format_query_result before summarising the rest
MAX_DISPLAYED_CONNECTIONS = 5


class PromptAssembler:
    """
    Builds graph-aware answer prompts.

    Args:
        max_chunks: Passages rendered into the documents section
        max_paths: Paths rendered into the knowledge graph section
        include_provenance: Tag each passage [From Graph] / [From Vector Search]
    """

    def __init__(
        self,
        max_chunks: int = 2,
        max_paths: int = 3,
        include_provenance: bool = False,
    ) -> None:
        self.max_chunks = max_chunks
        self.max_paths = max_paths
        self.include_provenance = include_provenance

    def build(
        self,
        query: str,
        retrieval: "RetrievalResult",
        *,
        include_graph_paths: bool = True,
    ) -> str:
        """
        Render the answer prompt for `query`.

        Args:
            query: The user's question
            retrieval: Evidence set and paths from the retriever
            include_graph_paths: Render the knowledge graph section

        Returns:
            Prompt text
        """
        sections = [ANSWER_INSTRUCTION, ""]

        if include_graph_paths and retrieval.paths:
            sections.append("KNOWLEDGE GRAPH:")
            paths = format_graph_paths(retrieval.paths[: self.max_paths])
            sections.extend(f"{i}. {path}" for i, path in enumerate(paths, 1))
            sections.append("")

        sections.extend(["RETRIEVED DOCUMENTS:", ""])
        for i, passage in enumerate(retrieval.passages[: self.max_chunks], 1):
            sections.append(f"[Document {i}] {self._describe(passage)}")
            sections.append(passage.text)
            sections.append("")

        sections.extend(["QUESTION:", query, "", "ANSWER:"])
        return "\n".join(sections)

    def _describe(self, passage: EvidencePassage) -> str:
        label = passage.source_title or "Unknown"
        if passage.page_number:
            label += f" (page {passage.page_number})"
        if self.include_provenance:
            label += " [From Graph]" if passage.from_graph else " [From Vector Search]"
        return label


# -----------------------------------------------------------------------------
# Verification prompt
# -----------------------------------------------------------------------------


def build_verification_prompt(
    query: str,
    answer: str,
    passages: Sequence[EvidencePassage],
) -> str:
    """Prompt asking whether `answer` is supported by `passages`."""
    documents = "\n\n".join(f"[{i}] {p.text}" for i, p in enumerate(passages, 1))
    return f"""Verify if the following answer is supported by the provided documents.

QUESTION: {query}

ANSWER: {answer}

DOCUMENTS:
{documents}

Is the answer fully supported by the documents? Respond with:
- "VERIFIED" if all claims in the answer are supported
- "PARTIAL" if some claims are supported but others are not
- "UNSUPPORTED" if major claims are not supported

Explanation:"""


# -----------------------------------------------------------------------------
# Citations and display
# -----------------------------------------------------------------------------


def extract_citations(passages: Sequence[EvidencePassage]) -> list[Citation]:
    """One citation per distinct (doc_id, page_number), first passage wins."""
    citations: list[Citation] = []
    seen: set[tuple[str, int | None]] = set()
    for passage in passages:
        key = (passage.doc_id, passage.page_number)
        if key in seen:
            continue
        seen.add(key)
        citations.append(
            Citation(
                source_title=passage.source_title,
                page_number=passage.page_number,
                doc_id=passage.doc_id,
                chunk_id=passage.chunk_id,
            )
        )
    return citations


def format_citations(citations: Sequence[Citation]) -> str:
    if not citations:
        return ""
    lines = ["", "", "SOURCES:"]
    for i, cite in enumerate(citations, 1):
        page = f", page {cite.page_number}" if cite.page_number else ""
        lines.append(f"[{i}] {cite.source_title}{page}")
    return "\n".join(lines) + "\n"


def format_graph_paths(paths: Sequence[RelationshipPath]) -> list[str]:
    """Render paths as "A → B (n hops)"."""
    return [
        f"{p.source} → {p.target} ({p.depth} hop{'s' if p.depth > 1 else ''})"
        for p in paths
    ]


def format_query_result(result: "QueryResult") -> str:
    """Plain-text rendering of a query result for terminals and logs."""
    rule = "=" * 60
    output = f"\n{rule}\nQUESTION: {result.query}\n\nANSWER:\n{result.answer}\n"

    if result.graph_paths:
        output += "\n" + "-" * 60 + "\nKNOWLEDGE GRAPH CONNECTIONS:\n"
        for i, path in enumerate(result.graph_paths[:MAX_DISPLAYED_CONNECTIONS], 1):
            output += f"  {i}. {path.source} → {path.target}\n"
        remaining = len(result.graph_paths) - MAX_DISPLAYED_CONNECTIONS
        if remaining > 0:
            output += f"  ... and {remaining} more connections\n"

    output += format_citations(result.citations)
    output += f"\n{rule}\n"
    return output
