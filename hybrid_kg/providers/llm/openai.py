"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider using LangChain's ChatOpenAI. Any OpenAI-compatible
server works through `base_url`, including a local Ollama
(http://localhost:11434/v1).

Supports:
    - Text generation (generate)
    - JSON-object mode for extraction (generate(..., json_mode=True))

Example:
    >>> provider = OpenAILLMProvider(model="gpt-4o-mini")
    >>> response = await provider.generate("What is 2+2?")
    >>> print(response)
    "4"
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from hybrid_kg.errors import ProviderError
from hybrid_kg.providers.base import LLMProvider

if TYPE_CHECKING:
    from langchain_openai import ChatOpenAI


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.0,
    base_url: str | None = None,
    timeout: float | None = None,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import to avoid requiring langchain-openai unless actually used.

    Args:
        api_key: Optional API key. If not provided, uses OPENAI_API_KEY env var.
        model: Model name to use.
        temperature: Sampling temperature.
        base_url: Optional OpenAI-compatible endpoint.
        timeout: Request timeout in seconds.

    Returns:
        ChatOpenAI instance

    Raises:
        ImportError: If langchain-openai package is not installed
    """
    try:
        from langchain_openai import ChatOpenAI
    except ImportError:
        raise ImportError(
            "OpenAI provider requires the 'langchain-openai' package. "
            "Install with: pip install hybrid-kg"
        )

    kwargs: dict[str, Any] = {"model": model, "temperature": temperature}
    if api_key:
        kwargs["api_key"] = api_key
    if base_url:
        kwargs["base_url"] = base_url
    if timeout:
        kwargs["timeout"] = timeout

    return ChatOpenAI(**kwargs)


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "gpt-4o-mini")
        base_url: Optional OpenAI-compatible endpoint
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
        timeout: float | None = None,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt/question
            system: Optional system message for context
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response
            json_mode: Ask the model for a single JSON object
            timeout: Transport timeout in seconds

        Returns:
            Generated text response

        Raises:
            ProviderError: If the backend call fails
        """
        from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

        base_client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
            base_url=self._base_url,
            timeout=timeout,
        )
        bind_kwargs: dict[str, Any] = {"max_tokens": max_tokens}
        if json_mode:
            bind_kwargs["response_format"] = {"type": "json_object"}
        client = base_client.bind(**bind_kwargs)

        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        try:
            response = await client.ainvoke(messages)
        except Exception as e:
            raise ProviderError(f"LLM call to {self._model} failed: {e}") from e
        return str(response.content)

    def with_model(self, model: str) -> "OpenAILLMProvider":
        """Return a new provider instance with a different model."""
        return OpenAILLMProvider(api_key=self._api_key, model=model, base_url=self._base_url)
