"""
Tests for HybridRetriever and rank_passages.

Scenario tests use the in-memory chunk store from conftest with a real
in-memory DuckDB graph; failure-policy tests use a mocked graph store.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from hybrid_kg.errors import ProviderError, StoreError
from hybrid_kg.query.retriever import HybridRetriever, rank_passages
from hybrid_kg.storage.base import MAX_NEIGHBORS_PER_ENTITY
from hybrid_kg.storage.duckdb import DuckDBGraphStore
from hybrid_kg.types import (
    EntityType,
    EvidenceOrigin,
    EvidencePassage,
    Neighbor,
    ProvenanceRef,
    RelationshipType,
)

PERSON = EntityType.PERSON
COMPANY = EntityType.COMPANY


async def seed(graph: DuckDBGraphStore, times) -> None:
    def ref(chunk_id, i):
        return ProvenanceRef(doc_id="tech-news", chunk_id=chunk_id, extracted_at=times[i])

    await graph.upsert_relationship(
        PERSON, "Sam Altman", RelationshipType.CEO_OF, COMPANY, "OpenAI", ref("c1", 0)
    )
    await graph.upsert_relationship(
        COMPANY, "OpenAI", RelationshipType.PARTNERED_WITH, COMPANY, "Microsoft", ref("c2", 1)
    )
    await graph.upsert_relationship(
        COMPANY, "Microsoft", RelationshipType.INVESTED_IN, COMPANY, "OpenAI", ref("c3", 2)
    )
    await graph.upsert_relationship(
        PERSON, "Satya Nadella", RelationshipType.CEO_OF, COMPANY, "Microsoft", ref("c3", 2)
    )


@pytest.fixture
def mock_graph() -> MagicMock:
    """Create a mock graph store with no entities."""
    graph = MagicMock()
    graph.entities_for_passages = AsyncMock(return_value=[])
    graph.all_entity_names = AsyncMock(return_value=[])
    graph.neighborhood = AsyncMock(return_value=[])
    return graph


def neighbor(name: str, hops: int = 1, chunk_ids: list[str] | None = None) -> Neighbor:
    return Neighbor(name=name, entity_type=COMPANY, hops=hops, chunk_ids=chunk_ids or [])


class TestHybridScenario:
    """End-to-end retrieval over a real graph."""

    @pytest.mark.asyncio
    async def test_ceo_question_reaches_partner_company(
        self, chunk_store, mock_embeddings, config, extraction_times
    ):
        """Sam Altman → OpenAI (1 hop) → Microsoft (2 hops), evidence beyond top_k."""
        async with DuckDBGraphStore() as graph:
            await seed(graph, extraction_times)
            retriever = HybridRetriever(chunk_store, graph, mock_embeddings, config)

            result = await retriever.retrieve("Who is the CEO of OpenAI?", top_k=1, graph_depth=2)

        assert [p.chunk_id for p in result.semantic] == ["c1"]
        assert len(result.passages) > 2

        paths = {(p.source, p.target): p.depth for p in result.paths}
        assert paths[("Sam Altman", "OpenAI")] == 1
        assert paths[("Sam Altman", "Microsoft")] == 2

    @pytest.mark.asyncio
    async def test_evidence_set_is_unique_and_origin_closed(
        self, chunk_store, mock_embeddings, config, extraction_times
    ):
        """No chunk appears twice; semantic hits first, then graph passages."""
        async with DuckDBGraphStore() as graph:
            await seed(graph, extraction_times)
            retriever = HybridRetriever(chunk_store, graph, mock_embeddings, config)

            result = await retriever.retrieve("Who is the CEO of OpenAI?", top_k=2, graph_depth=2)

        ids = [p.chunk_id for p in result.passages]
        assert len(ids) == len(set(ids))
        assert all(p.origin == EvidenceOrigin.SEMANTIC for p in result.semantic)
        assert all(p.origin == EvidenceOrigin.GRAPH for p in result.graph)
        assert all(p.score is not None for p in result.semantic)
        assert result.passages == [*result.semantic, *result.graph]

    @pytest.mark.asyncio
    async def test_depth_zero_equals_vector_search(
        self, chunk_store, mock_embeddings, config, mock_graph
    ):
        """graph_depth=0 returns exactly the semantic hits and no paths."""
        retriever = HybridRetriever(chunk_store, mock_graph, mock_embeddings, config)

        result = await retriever.retrieve("Who is the CEO of OpenAI?", top_k=2, graph_depth=0)
        direct = await chunk_store.search([1.0, 0.0, 0.0], 2)

        assert result.passages == direct
        assert result.paths == []
        mock_graph.entities_for_passages.assert_not_called()
        mock_graph.neighborhood.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_hits_is_empty_not_error(
        self, empty_chunk_store, mock_embeddings, config, mock_graph
    ):
        retriever = HybridRetriever(empty_chunk_store, mock_graph, mock_embeddings, config)

        result = await retriever.retrieve("anything")

        assert result.is_empty
        assert result.paths == []
        mock_graph.entities_for_passages.assert_not_called()

    @pytest.mark.asyncio
    async def test_config_defaults_apply(self, chunk_store, mock_embeddings, config, mock_graph):
        """top_k and graph_depth fall back to the configured defaults."""
        retriever = HybridRetriever(chunk_store, mock_graph, mock_embeddings, config)

        result = await retriever.retrieve("Who is the CEO of OpenAI?")

        assert len(result.semantic) == config.default_top_k


class TestEntityResolution:
    """Tests for provenance-first entity resolution and the name-scan fallback."""

    @pytest.mark.asyncio
    async def test_provenance_is_preferred(self, chunk_store, mock_embeddings, config, mock_graph):
        mock_graph.entities_for_passages = AsyncMock(return_value=["OpenAI"])

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        assert result.entities == ["OpenAI"]
        mock_graph.all_entity_names.assert_not_called()

    @pytest.mark.asyncio
    async def test_fallback_scan_matches_whole_words(
        self, chunk_store, mock_embeddings, config, mock_graph
    ):
        """Without provenance, known names are matched case-insensitively as whole words."""
        mock_graph.all_entity_names = AsyncMock(
            return_value=["AI", "Google", "openai", "Open", "Sam Altman"]
        )

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        # c1 text: "Sam Altman is the CEO of OpenAI."
        assert result.entities == ["openai", "Sam Altman"]
        expanded = [call.args[0] for call in mock_graph.neighborhood.call_args_list]
        assert expanded == ["openai", "Sam Altman"]

    @pytest.mark.asyncio
    async def test_resolution_failure_returns_semantic_only(
        self, chunk_store, mock_embeddings, config, mock_graph
    ):
        mock_graph.entities_for_passages = AsyncMock(side_effect=StoreError("graph down"))

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=2, graph_depth=2)

        assert [p.chunk_id for p in result.passages] == ["c1", "c2"]
        assert result.paths == []


class TestExpansionPolicy:
    """Tests for per-entity failure isolation and the neighbour cap."""

    @pytest.mark.asyncio
    async def test_failed_entity_is_skipped(self, chunk_store, mock_embeddings, config, mock_graph):
        """One entity's traversal error does not affect the others."""
        mock_graph.entities_for_passages = AsyncMock(return_value=["OpenAI", "Sam Altman"])

        async def neighborhood(name, max_hops, limit=MAX_NEIGHBORS_PER_ENTITY):
            if name == "OpenAI":
                raise StoreError("traversal failed")
            return [neighbor("Microsoft", chunk_ids=["c2"])]

        mock_graph.neighborhood = AsyncMock(side_effect=neighborhood)

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        assert [(p.source, p.target) for p in result.paths] == [("Sam Altman", "Microsoft")]
        assert [p.chunk_id for p in result.graph] == ["c2"]

    @pytest.mark.asyncio
    async def test_neighbor_cap_is_enforced(self, chunk_store, mock_embeddings, config, mock_graph):
        """Over-eager stores are trimmed to the cap at the query layer."""
        mock_graph.entities_for_passages = AsyncMock(return_value=["OpenAI"])
        mock_graph.neighborhood = AsyncMock(
            return_value=[neighbor(f"Company {i}") for i in range(MAX_NEIGHBORS_PER_ENTITY + 25)]
        )

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        assert len(result.paths) == MAX_NEIGHBORS_PER_ENTITY
        assert mock_graph.neighborhood.call_args.kwargs["limit"] == MAX_NEIGHBORS_PER_ENTITY

    @pytest.mark.asyncio
    async def test_discovered_entities_are_deduplicated(
        self, chunk_store, mock_embeddings, config, mock_graph
    ):
        """An entity reached from two starting points is resolved once; both paths are kept."""
        mock_graph.entities_for_passages = AsyncMock(return_value=["OpenAI", "Sam Altman"])
        mock_graph.neighborhood = AsyncMock(
            return_value=[neighbor("Microsoft", chunk_ids=["c3", "c2"])]
        )

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        assert len(result.paths) == 2
        assert [p.chunk_id for p in result.graph] == ["c3", "c2"]

    @pytest.mark.asyncio
    async def test_passage_lookup_failure_keeps_paths(
        self, chunk_store, mock_embeddings, config, mock_graph
    ):
        chunk_store.get_passages = AsyncMock(side_effect=StoreError("index busy"))
        mock_graph.entities_for_passages = AsyncMock(return_value=["OpenAI"])
        mock_graph.neighborhood = AsyncMock(return_value=[neighbor("Microsoft", chunk_ids=["c2"])])

        result = await HybridRetriever(
            chunk_store, mock_graph, mock_embeddings, config
        ).retrieve("q", top_k=1, graph_depth=1)

        assert result.graph == []
        assert len(result.paths) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, chunk_store, config, mock_graph):
        """Connectivity failures before retrieval begins are raised."""
        embeddings = MagicMock()
        embeddings.embed_single = AsyncMock(side_effect=ProviderError("embedding service down"))

        with pytest.raises(ProviderError):
            await HybridRetriever(chunk_store, mock_graph, embeddings, config).retrieve("q")


class TestRankPassages:
    """Tests for presentation ranking."""

    def _passage(self, chunk_id, score=None, origin=EvidenceOrigin.SEMANTIC):
        return EvidencePassage(
            chunk_id=chunk_id, doc_id="d", text="t", score=score, origin=origin
        )

    def test_graph_bonus_and_vector_weight(self):
        passages = [
            self._passage("a", score=0.9),
            self._passage("b", score=0.5),
            self._passage("g", origin=EvidenceOrigin.GRAPH),
        ]

        ranked = rank_passages(passages)

        assert [p.chunk_id for p in ranked] == ["a", "b", "g"]
        assert ranked[0].combined_score == pytest.approx(0.63)
        assert ranked[2].combined_score == pytest.approx(0.3)

    def test_graph_passage_can_outrank_weak_hit(self):
        passages = [
            self._passage("weak", score=0.2),
            self._passage("g", origin=EvidenceOrigin.GRAPH),
        ]
        assert [p.chunk_id for p in rank_passages(passages)] == ["g", "weak"]

    def test_membership_unchanged_and_stable(self):
        passages = [
            self._passage("x", score=0.5),
            self._passage("y", score=0.5),
        ]

        ranked = rank_passages(passages)

        assert [p.chunk_id for p in ranked] == ["x", "y"]
        assert passages[0].combined_score is None
