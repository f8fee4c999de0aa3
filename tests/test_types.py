"""Tests for data types and small utilities."""

import asyncio

import pytest
from pydantic import ValidationError

from hybrid_kg.errors import ExtractionTimeout
from hybrid_kg.types import (
    EntityType,
    EvidenceOrigin,
    EvidencePassage,
    ExtractedEntity,
    ExtractedRelationship,
    Passage,
    QueryResult,
    RelationshipPath,
    RelationshipType,
    RetrievalResult,
)
from hybrid_kg.utils.deadline import run_with_deadline
from hybrid_kg.utils.text import (
    clean_entity_name,
    find_mentions,
    normalize_name,
    normalize_relationship_type,
)


class TestPassage:
    """Tests for Passage and EvidencePassage."""

    def test_passage_is_immutable(self):
        passage = Passage(chunk_id="c1", doc_id="d", text="t")
        with pytest.raises(ValidationError):
            passage.text = "changed"

    def test_evidence_from_passage(self):
        passage = Passage(chunk_id="c1", doc_id="d", source_title="T", page_number=4, text="t")

        evidence = EvidencePassage.from_passage(passage, EvidenceOrigin.GRAPH)

        assert evidence.from_graph
        assert evidence.score is None
        assert evidence.page_number == 4

    def test_retrieval_result_merges_semantic_first(self):
        semantic = EvidencePassage(chunk_id="s", doc_id="d", text="t")
        graph = EvidencePassage(chunk_id="g", doc_id="d", text="t", origin=EvidenceOrigin.GRAPH)

        result = RetrievalResult(query="q", semantic=[semantic], graph=[graph])

        assert [p.chunk_id for p in result.passages] == ["s", "g"]
        assert not result.is_empty
        assert RetrievalResult(query="q").is_empty


class TestLabels:
    """Tests for the entity and relationship allow-lists."""

    def test_entity_type_parse(self):
        assert EntityType.parse("company") == EntityType.COMPANY
        assert EntityType.parse(" PERSON ") == EntityType.PERSON
        assert EntityType.parse("Country") is None
        assert EntityType.parse(None) is None

    def test_relationship_type_parse(self):
        assert RelationshipType.parse("partnered with") == RelationshipType.PARTNERED_WITH
        assert RelationshipType.parse("ceo-of") == RelationshipType.CEO_OF
        assert RelationshipType.parse("ACQUIRED") is None
        assert RelationshipType.parse(42) is None

    def test_extracted_relationship_aliases(self):
        rel = ExtractedRelationship.model_validate(
            {"from": " Sam Altman ", "from_type": "person", "type": "ceo of",
             "to": "OpenAI (company)", "to_type": "Company"}
        )

        assert rel.source == "Sam Altman"
        assert rel.target == "OpenAI"
        assert rel.type == RelationshipType.CEO_OF
        assert rel.source_type == EntityType.PERSON

    def test_extracted_entity_rejects_bad_items(self):
        with pytest.raises(ValidationError):
            ExtractedEntity.model_validate({"name": "  ", "type": "Person"})
        with pytest.raises(ValidationError):
            ExtractedEntity.model_validate({"name": "Paris", "type": "City"})


class TestResultPayload:
    def test_relationship_path_wire_names(self):
        path = RelationshipPath.model_validate({"from": "A", "to": "B", "depth": 2})

        assert path.source == "A"
        assert path.to_payload() == {"from": "A", "to": "B", "depth": 2}
        assert path.model_dump(by_alias=True)["from"] == "A"

    def test_query_result_defaults(self):
        result = QueryResult(query="q", answer="a")

        payload = result.to_payload()

        assert payload["citations"] == []
        assert payload["graphPaths"] == []
        assert payload["stats"]["totalChunks"] == 0
        assert result.total_time_ms == 0


class TestText:
    """Tests for name normalization and mention scanning."""

    def test_clean_entity_name(self):
        assert clean_entity_name("  OpenAI   (company) ") == "OpenAI"
        assert clean_entity_name('"Sam  Altman".') == "Sam Altman"

    def test_clean_entity_name_is_stable(self):
        """Cleaning an already-cleaned name never changes it."""
        for raw in ["'.'", '"OpenAI."', "`Azure`;", "'Sam Altman'.", "Microsoft"]:
            once = clean_entity_name(raw)
            assert clean_entity_name(once) == once
        assert clean_entity_name("'.'") == ""

    def test_punctuation_only_name_fails_validation(self):
        with pytest.raises(ValidationError):
            ExtractedEntity.model_validate({"name": "'.'", "type": "Person"})

    def test_normalize_name_merges_spellings(self):
        assert normalize_name("OpenAI") == normalize_name("openai ") == "openai"

    def test_normalize_relationship_type(self):
        assert normalize_relationship_type("invested in") == "INVESTED_IN"
        assert normalize_relationship_type("__works-on__") == "WORKS_ON"

    def test_find_mentions_whole_words(self):
        text = "Microsoft invested billions in OpenAI."

        assert find_mentions(text, ["openai", "Micro", "Microsoft", "AI"]) == [
            "openai",
            "Microsoft",
        ]


class TestDeadline:
    @pytest.mark.asyncio
    async def test_returns_result_within_budget(self):
        async def quick():
            return 7

        assert await run_with_deadline(quick(), 1.0, ExtractionTimeout) == 7

    @pytest.mark.asyncio
    async def test_raises_typed_timeout(self):
        async def slow():
            await asyncio.sleep(5)

        with pytest.raises(ExtractionTimeout, match="after 0.01s"):
            await run_with_deadline(slow(), 0.01, ExtractionTimeout)

    @pytest.mark.asyncio
    async def test_no_budget_waits(self):
        async def quick():
            return "done"

        assert await run_with_deadline(quick(), None, ExtractionTimeout) == "done"
