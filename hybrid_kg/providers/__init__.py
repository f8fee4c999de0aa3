"""
Providers

LLM and embedding backends behind abstract interfaces.

Modules:
    base: LLMProvider and EmbeddingProvider interfaces
    llm.openai: ChatOpenAI-backed LLM provider
    embedding.openai: OpenAIEmbeddings-backed embedding provider
"""

from hybrid_kg.providers.base import EmbeddingProvider, LLMProvider

__all__ = ["EmbeddingProvider", "LLMProvider"]
