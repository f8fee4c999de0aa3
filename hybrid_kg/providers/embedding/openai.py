"""
OpenAI Embedding Provider (LangChain-based)

Implements EmbeddingProvider using LangChain's OpenAIEmbeddings.

The text-embedding-3 models can be shortened to any dimension; the
configured `dimensions` is passed through so query vectors match the
chunk index.

Example:
    >>> provider = OpenAIEmbeddingProvider(dimensions=768)
    >>> vector = await provider.embed_single("Who runs OpenAI?")
    >>> print(len(vector))
    768
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from hybrid_kg.errors import ProviderError
from hybrid_kg.providers.base import EmbeddingProvider

if TYPE_CHECKING:
    from langchain_openai import OpenAIEmbeddings


# Native dimensions per model
MODEL_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

# Models that accept a `dimensions` parameter
_SHORTENABLE = {"text-embedding-3-large", "text-embedding-3-small"}

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
    base_url: str | None = None,
) -> "OpenAIEmbeddings":
    """
    Get an OpenAIEmbeddings instance.

    Uses lazy import to avoid requiring langchain-openai unless actually used.

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import OpenAIEmbeddings
    except ImportError:
        raise ImportError(
            "OpenAI embedding provider requires the 'langchain-openai' package. "
            "Install with: pip install hybrid-kg"
        )

    kwargs: dict[str, Any] = {"model": model}
    if dimensions is not None and model in _SHORTENABLE:
        kwargs["dimensions"] = dimensions
    if base_url:
        kwargs["base_url"] = base_url
        # Non-OpenAI servers expect raw strings, not token arrays
        kwargs["check_embedding_ctx_length"] = False
    if api_key:
        from pydantic import SecretStr
        kwargs["api_key"] = SecretStr(api_key)
    return OpenAIEmbeddings(**kwargs)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "text-embedding-3-small")
        dimensions: Output dimensions (defaults to the model's native size)
        base_url: Optional OpenAI-compatible endpoint
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        base_url: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._requested_dimensions = dimensions
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        # Lazy initialization
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> "OpenAIEmbeddings":
        """Get or create the OpenAIEmbeddings client."""
        if self._client is None:
            self._client = _get_openai_embeddings(
                api_key=self._api_key,
                model=self._model,
                dimensions=self._requested_dimensions,
                base_url=self._base_url,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        """Embedding dimensions for the current model."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Returns:
            List of embedding vectors (same order as input)
        """
        if not texts:
            return []

        client = self._get_client()

        # LangChain's embed_documents is synchronous, run in thread pool
        try:
            return await asyncio.to_thread(client.embed_documents, texts)
        except Exception as e:
            raise ProviderError(f"Embedding call to {self._model} failed: {e}") from e

    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        client = self._get_client()

        try:
            return await asyncio.to_thread(client.embed_query, text)
        except Exception as e:
            raise ProviderError(f"Embedding call to {self._model} failed: {e}") from e
