"""
LLM Provider Implementations

Modules:
    openai: OpenAI-compatible chat provider (OpenAI, Ollama, vLLM, ...)

Each provider implements the LLMProvider interface with:
    - generate(): Text completion, optionally in JSON-object mode

Example:
    >>> from hybrid_kg.providers.llm import OpenAILLMProvider
    >>> provider = OpenAILLMProvider(model="gpt-4o-mini")
    >>> response = await provider.generate("Hello!")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hybrid_kg.providers.llm.openai import OpenAILLMProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid requiring all dependencies."""
    if name == "OpenAILLMProvider":
        from hybrid_kg.providers.llm.openai import OpenAILLMProvider
        return OpenAILLMProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAILLMProvider"]
