"""
Tests for PromptAssembler, citations and display helpers.
"""

from hybrid_kg.query.prompt import (
    PromptAssembler,
    build_verification_prompt,
    extract_citations,
    format_citations,
    format_graph_paths,
    format_query_result,
)
from hybrid_kg.types import (
    Citation,
    EvidenceOrigin,
    EvidencePassage,
    QueryResult,
    RelationshipPath,
    RetrievalResult,
)


def passage(chunk_id, *, doc_id="tech-news", page=1, origin=EvidenceOrigin.SEMANTIC, text=None):
    return EvidencePassage(
        chunk_id=chunk_id,
        doc_id=doc_id,
        source_title="Tech News",
        page_number=page,
        text=text or f"text of {chunk_id}",
        score=0.9 if origin == EvidenceOrigin.SEMANTIC else None,
        origin=origin,
    )


def path(source, target, depth=1):
    return RelationshipPath(source=source, target=target, depth=depth)


class TestPromptAssembler:
    """Tests for the graph-aware answer prompt."""

    def test_layout(self):
        retrieval = RetrievalResult(
            query="Who is the CEO of OpenAI?",
            semantic=[passage("c1", text="Sam Altman is the CEO of OpenAI.")],
            paths=[path("Sam Altman", "OpenAI")],
        )

        prompt = PromptAssembler().build("Who is the CEO of OpenAI?", retrieval)

        assert prompt.startswith("Answer using ONLY the information below. Be concise.\n\n")
        assert "KNOWLEDGE GRAPH:\n1. Sam Altman → OpenAI (1 hop)\n" in prompt
        assert "[Document 1] Tech News (page 1)\nSam Altman is the CEO of OpenAI.\n" in prompt
        assert prompt.endswith("QUESTION:\nWho is the CEO of OpenAI?\n\nANSWER:")
        assert prompt.index("KNOWLEDGE GRAPH") < prompt.index("RETRIEVED DOCUMENTS")

    def test_caps_hold_regardless_of_breadth(self):
        """Only max_chunks passages and max_paths paths are rendered."""
        retrieval = RetrievalResult(
            query="q",
            semantic=[passage(f"s{i}") for i in range(5)],
            graph=[passage(f"g{i}", origin=EvidenceOrigin.GRAPH) for i in range(5)],
            paths=[path("A", f"B{i}") for i in range(10)],
        )

        prompt = PromptAssembler(max_chunks=2, max_paths=3).build("q", retrieval)

        assert prompt.count("[Document ") == 2
        assert "text of s0" in prompt and "text of s1" in prompt
        assert "text of s2" not in prompt
        assert "3. A → B2" in prompt
        assert "4. " not in prompt

    def test_graph_section_omitted(self):
        retrieval = RetrievalResult(query="q", semantic=[passage("c1")], paths=[path("A", "B")])

        without_paths = PromptAssembler().build("q", RetrievalResult(query="q", semantic=[passage("c1")]))
        vector_only = PromptAssembler().build("q", retrieval, include_graph_paths=False)

        assert "KNOWLEDGE GRAPH" not in without_paths
        assert "KNOWLEDGE GRAPH" not in vector_only

    def test_provenance_tags(self):
        retrieval = RetrievalResult(
            query="q",
            semantic=[passage("c1")],
            graph=[passage("c2", page=None, origin=EvidenceOrigin.GRAPH)],
        )

        tagged = PromptAssembler(include_provenance=True).build("q", retrieval)
        untagged = PromptAssembler().build("q", retrieval)

        assert "[Document 1] Tech News (page 1) [From Vector Search]" in tagged
        assert "[Document 2] Tech News [From Graph]" in tagged
        assert "[From" not in untagged


class TestCitations:
    """Tests for citation extraction and formatting."""

    def test_dedup_by_document_and_page(self):
        """One citation per (doc, page), keeping the first passage's id."""
        passages = [
            passage("c1", page=1),
            passage("c2", page=1),
            passage("c3", page=2),
            passage("c4", doc_id="other", page=1),
        ]

        citations = extract_citations(passages)

        assert [(c.doc_id, c.page_number, c.chunk_id) for c in citations] == [
            ("tech-news", 1, "c1"),
            ("tech-news", 2, "c3"),
            ("other", 1, "c4"),
        ]

    def test_missing_page_is_its_own_key(self):
        citations = extract_citations([passage("c1", page=None), passage("c2", page=None)])
        assert len(citations) == 1
        assert citations[0].page_number is None

    def test_format_citations(self):
        citations = [
            Citation(source_title="Tech News", page_number=3, doc_id="d", chunk_id="c"),
            Citation(source_title="Blog", doc_id="b", chunk_id="x"),
        ]
        assert format_citations(citations) == "\n\nSOURCES:\n[1] Tech News, page 3\n[2] Blog\n"
        assert format_citations([]) == ""


class TestFormatting:
    """Tests for path and result rendering."""

    def test_hop_pluralization(self):
        assert format_graph_paths([path("A", "B", 1), path("A", "C", 2)]) == [
            "A → B (1 hop)",
            "A → C (2 hops)",
        ]

    def test_format_query_result_truncates_connections(self):
        result = QueryResult(
            query="q",
            answer="an answer",
            graph_paths=[path("A", f"B{i}") for i in range(7)],
            citations=[Citation(source_title="Tech News", page_number=1, doc_id="d", chunk_id="c")],
        )

        text = format_query_result(result)

        assert "QUESTION: q" in text
        assert "  5. A → B4" in text
        assert "B5" not in text
        assert "... and 2 more connections" in text
        assert "[1] Tech News, page 1" in text


class TestVerificationPrompt:
    def test_verification_prompt(self):
        prompt = build_verification_prompt("q?", "the answer", [passage("c1", text="alpha")])
        assert "ANSWER: the answer" in prompt
        assert "[1] alpha" in prompt
        assert '"UNSUPPORTED"' in prompt
        assert prompt.endswith("Explanation:")
