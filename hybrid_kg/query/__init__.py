"""
Query Module

Hybrid retrieval and grounded answer generation.

Modules:
    retriever: HybridRetriever (vector search + graph expansion), rank_passages
    prompt: PromptAssembler, citations, display helpers
    orchestrator: QueryOrchestrator (state machine, timeout fallback)
"""

from hybrid_kg.query.orchestrator import QueryOrchestrator
from hybrid_kg.query.prompt import (
    PromptAssembler,
    extract_citations,
    format_citations,
    format_graph_paths,
    format_query_result,
)
from hybrid_kg.query.retriever import HybridRetriever, rank_passages

__all__ = [
    "HybridRetriever",
    "PromptAssembler",
    "QueryOrchestrator",
    "extract_citations",
    "format_citations",
    "format_graph_paths",
    "format_query_result",
    "rank_passages",
]
