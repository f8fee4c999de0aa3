"""
Command-Line Interface

CLI commands for HybridKG operations.

Commands:
    hybrid-kg index            - Index passages from a JSONL file
    hybrid-kg extract          - Build the graph from indexed passages
    hybrid-kg query            - Ask a question
    hybrid-kg stats            - Display knowledge base counters
    hybrid-kg delete-document  - Remove one document's passages

Usage:
    # Index pre-chunked passages (one JSON object per line)
    hybrid-kg index passages.jsonl --kb ./kb

    # Extract entities and relationships
    hybrid-kg extract --kb ./kb --limit 100

    # Query
    hybrid-kg query "Who is the CEO of OpenAI?" --kb ./kb --graph-depth 2
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

__all__ = ["main", "app"]

app = typer.Typer(
    name="hybrid-kg",
    help="Hybrid vector + knowledge graph retrieval with provenance",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Load .env and configure logging."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    logging.getLogger("hybrid_kg").setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def _kb_option(exists: bool = True) -> Path:
    return typer.Option(
        Path("./kb"),
        "--kb", "-k",
        help="Knowledge base directory",
        exists=exists,
    )


@app.command()
def index(
    path: Path = typer.Argument(..., help="JSONL file of passages", exists=True),
    kb: Path = _kb_option(exists=False),
) -> None:
    """Index passages (chunk_id, doc_id, text, ...) from a JSONL file."""

    async def _run() -> None:
        from hybrid_kg.api.engine import HybridKG
        from hybrid_kg.types import Passage

        passages = []
        with path.open(encoding="utf-8") as f:
            for line_no, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    passages.append(Passage.model_validate(json.loads(line)))
                except ValueError as e:
                    console.print(f"[red]Line {line_no}: {e}[/]")
                    raise typer.Exit(1)

        async with HybridKG(kb) as kg:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task(f"Indexing {len(passages)} passages...")
                written = await kg.add_passages(passages)
                progress.update(task, completed=True)

        console.print(f"[green]Indexed {written} passages[/]")

    asyncio.run(_run())


@app.command()
def extract(
    kb: Path = _kb_option(),
    doc_id: Optional[str] = typer.Option(None, "--doc", "-d", help="Only this document"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Max passages"),
) -> None:
    """Extract entities and relationships into the graph."""

    async def _run() -> None:
        from hybrid_kg.api.engine import HybridKG

        async with HybridKG(kb, create=False) as kg:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Extracting...", total=None)

                def on_progress(done: int, total: int) -> None:
                    progress.update(task, completed=done, total=total)

                summary = await kg.extract(doc_id=doc_id, limit=limit, on_progress=on_progress)

        console.print()
        console.print(Panel(
            f"  Passages: {summary.processed}\n"
            f"  Entities: {summary.entities}\n"
            f"  Relationships: {summary.relationships}\n"
            f"  Errors: {summary.errors}\n\n"
            f"  Graph nodes: {summary.graph.nodes}\n"
            f"  Graph relationships: {summary.graph.relationships}",
            title="Extraction Complete",
            border_style="green" if summary.errors == 0 else "yellow",
        ))

    asyncio.run(_run())


@app.command()
def query(
    question: str = typer.Argument(..., help="Question to ask the knowledge base"),
    kb: Path = _kb_option(),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-t", help="Semantic hits"),
    graph_depth: Optional[int] = typer.Option(None, "--graph-depth", "-g", help="Graph hops"),
    vector_only: bool = typer.Option(False, "--vector-only", help="Skip graph expansion"),
    ranked: bool = typer.Option(False, "--ranked", help="Show ranked evidence passages"),
) -> None:
    """Query the knowledge base."""

    async def _run() -> None:
        from hybrid_kg.api.engine import HybridKG
        from hybrid_kg.query import format_graph_paths, rank_passages
        from hybrid_kg.query.prompt import MAX_DISPLAYED_CONNECTIONS

        async with HybridKG(kb, create=False) as kg:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Thinking...")
                if vector_only:
                    result = await kg.query_vector_only(question, top_k=top_k)
                else:
                    result = await kg.query(question, top_k=top_k, graph_depth=graph_depth)
                progress.update(task, completed=True)

        console.print()
        console.print(Panel(
            Markdown(result.answer),
            title=f"Answer ({result.state.value})",
            border_style="green" if result.error is None else "yellow",
        ))

        if result.graph_paths:
            console.print("\n[bold]Knowledge graph connections:[/]")
            shown = format_graph_paths(result.graph_paths[:MAX_DISPLAYED_CONNECTIONS])
            for i, path in enumerate(shown, 1):
                console.print(f"  {i}. {path}")
            remaining = len(result.graph_paths) - MAX_DISPLAYED_CONNECTIONS
            if remaining > 0:
                console.print(f"  [dim]... and {remaining} more connections[/]")

        if ranked and result.passages:
            console.print()
            table = Table(title="Evidence")
            table.add_column("Score", justify="right", style="green")
            table.add_column("Origin", style="magenta")
            table.add_column("Source", style="cyan")
            table.add_column("Text", style="dim")
            for passage in rank_passages(result.passages):
                table.add_row(
                    f"{passage.combined_score:.3f}",
                    passage.origin.value,
                    passage.source_title,
                    passage.text[:80],
                )
            console.print(table)

        if result.citations:
            console.print()
            table = Table(title="Sources")
            table.add_column("#", justify="right")
            table.add_column("Document", style="cyan")
            table.add_column("Page", style="dim")
            for i, cite in enumerate(result.citations, 1):
                table.add_row(str(i), cite.source_title, str(cite.page_number or ""))
            console.print(table)

        stats = result.stats
        console.print(
            f"\n[dim]{stats.vector_chunks} vector + {stats.graph_chunks} graph passages, "
            f"{stats.graph_path_count} paths, {result.total_time_ms}ms[/]"
        )

    asyncio.run(_run())


@app.command()
def stats(kb: Path = _kb_option()) -> None:
    """Display knowledge base counters."""

    async def _run() -> None:
        from hybrid_kg.api.engine import HybridKG

        async with HybridKG(kb, create=False) as kg:
            counts = await kg.stats()

        table = Table(title=f"Knowledge Base: {kb}")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right", style="green")

        table.add_row("Documents", str(counts["documents"]))
        table.add_row("Passages", str(counts["chunks"]))
        table.add_row("Graph nodes", str(counts["nodes"]))
        table.add_row("Graph relationships", str(counts["relationships"]))
        for label, count in sorted(counts["node_types"].items()):
            table.add_row(f"  {label}", str(count))

        console.print(table)

    asyncio.run(_run())


@app.command("delete-document")
def delete_document(
    doc_id: str = typer.Argument(..., help="Document to remove"),
    kb: Path = _kb_option(),
) -> None:
    """Remove one document's passages from the index."""

    async def _run() -> None:
        from hybrid_kg.api.engine import HybridKG

        async with HybridKG(kb, create=False) as kg:
            removed = await kg.delete_document(doc_id)

        if removed:
            console.print(f"[green]Removed {removed} passages for {doc_id}[/]")
        else:
            console.print(f"[yellow]No passages found for {doc_id}[/]")

    asyncio.run(_run())


def main() -> None:
    """Entry point for the CLI."""
    app()
