"""
HybridKG - Hybrid Retrieval & Provenance-Linking Engine

Answers questions over a document corpus by combining vector search with
traversal of a knowledge graph built from the same passages. Every node and
edge in the graph remembers which passage it came from, and every answer
cites the passages it was built from.

Example:
    >>> from hybrid_kg import HybridKG
    >>> async with HybridKG("./kb") as kg:
    ...     await kg.extract()
    ...     result = await kg.query("Who is the CEO of OpenAI?", graph_depth=2)
    ...     print(result.answer)

Main Classes:
    HybridKG: Primary entry point for all operations
    KGConfig: Configuration management
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading optional dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "HybridKG":
        from hybrid_kg.api.engine import HybridKG
        return HybridKG

    if name == "KGConfig":
        from hybrid_kg.config.settings import KGConfig
        return KGConfig

    if name == "handle_query_request":
        from hybrid_kg.api.handler import handle_query_request
        return handle_query_request

    # Types
    if name in ("Passage", "Citation", "QueryResult", "QueryState", "RelationshipPath"):
        from hybrid_kg import types
        return getattr(types, name)

    raise AttributeError(f"module 'hybrid_kg' has no attribute {name!r}")


__all__ = [
    # Main classes
    "HybridKG",
    "KGConfig",
    "handle_query_request",

    # Types
    "Passage",
    "Citation",
    "QueryResult",
    "QueryState",
    "RelationshipPath",

    # Version
    "__version__",
]
