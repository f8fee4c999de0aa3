"""
Query Request Handler

Transport-agnostic request/response mapping for a query endpoint. An HTTP
server (or any other front end) decodes its body into a dict, calls
handle_query_request(), and serialises the returned dict as-is.

Request:
    {"query": str, "topK": int = 2, "graphDepth": int = 1}

Response:
    {"success": true, "data": {query, answer, citations, graphPaths, stats}}
    {"success": false, "error": str}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hybrid_kg.errors import HybridKGError

if TYPE_CHECKING:
    from hybrid_kg.api.engine import HybridKG

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    """Decoded query request body."""

    query: str = ""
    top_k: int = Field(default=2, alias="topK", ge=1)
    graph_depth: int = Field(default=1, alias="graphDepth", ge=0)

    model_config = ConfigDict(populate_by_name=True)


def _failure(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}


async def handle_query_request(engine: "HybridKG", request: dict[str, Any]) -> dict[str, Any]:
    """
    Run one query request against `engine`.

    Never raises for request or backend errors; they are reported as
    {"success": false, "error": ...}.
    """
    try:
        parsed = QueryRequest.model_validate(request)
    except ValidationError as e:
        return _failure(f"Invalid request: {e.errors()[0]['msg']}")

    question = parsed.query.strip()
    if not question:
        return _failure("Query is required")

    logger.info(f"Query request: topK={parsed.top_k}, graphDepth={parsed.graph_depth}")
    try:
        result = await engine.query(
            question, top_k=parsed.top_k, graph_depth=parsed.graph_depth
        )
    except (HybridKGError, ValueError, OSError) as e:
        logger.error(f"Query request failed: {e}")
        return _failure(str(e) or "Internal server error")

    return {"success": True, "data": result.to_payload()}
