"""Tests for the hybrid-kg command line."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from hybrid_kg.cli import app
from hybrid_kg.query.prompt import MAX_DISPLAYED_CONNECTIONS
from hybrid_kg.types import Citation, QueryResult, RelationshipPath


@pytest.fixture
def result() -> QueryResult:
    return QueryResult(
        query="Who leads OpenAI?",
        answer="Sam Altman.",
        graph_paths=[
            RelationshipPath(source="Sam Altman", target=f"Entity {i}", depth=1)
            for i in range(MAX_DISPLAYED_CONNECTIONS + 2)
        ],
        citations=[Citation(source_title="Tech News", page_number=1, doc_id="d", chunk_id="c1")],
    )


@pytest.fixture
def fake_kg(result) -> MagicMock:
    kg = MagicMock()
    kg.__aenter__ = AsyncMock(return_value=kg)
    kg.__aexit__ = AsyncMock(return_value=False)
    kg.query = AsyncMock(return_value=result)
    kg.query_vector_only = AsyncMock(return_value=result)
    return kg


class TestCLI:
    def test_help_lists_commands(self):
        result = CliRunner().invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("index", "extract", "query", "stats", "delete-document"):
            assert command in result.stdout

    def test_query_truncates_connections(self, tmp_path, fake_kg):
        """Connections beyond the display cap are summarised."""
        with patch("hybrid_kg.api.engine.HybridKG", return_value=fake_kg):
            result = CliRunner().invoke(app, ["query", "Who leads OpenAI?", "--kb", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Sam Altman." in result.stdout
        assert f"{MAX_DISPLAYED_CONNECTIONS}. Sam Altman → Entity 4 (1 hop)" in result.stdout
        assert "Entity 5" not in result.stdout
        assert "... and 2 more connections" in result.stdout
        fake_kg.query.assert_awaited_once_with("Who leads OpenAI?", top_k=None, graph_depth=None)

    def test_query_vector_only(self, tmp_path, fake_kg):
        with patch("hybrid_kg.api.engine.HybridKG", return_value=fake_kg):
            result = CliRunner().invoke(
                app, ["query", "Who?", "--kb", str(tmp_path), "--vector-only", "--top-k", "3"]
            )

        assert result.exit_code == 0, result.output
        fake_kg.query_vector_only.assert_awaited_once_with("Who?", top_k=3)
        fake_kg.query.assert_not_called()
