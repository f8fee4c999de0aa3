"""
Public API Layer

Modules:
    engine: HybridKG class - main entry point
    handler: handle_query_request - request/response mapping for front ends

Design Principles:
    - Single entry point (HybridKG) for most operations
    - Lazy initialization - don't connect until needed
    - Context manager support for resource cleanup
"""

from hybrid_kg.api.engine import HybridKG
from hybrid_kg.api.handler import QueryRequest, handle_query_request

__all__ = ["HybridKG", "QueryRequest", "handle_query_request"]
