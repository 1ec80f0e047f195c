"""Abstract base class for generation (LLM) service providers.

The chat orchestrator hands over an ordered message list (system, prior
turns, new user message) and receives a single text completion back.  The
content is relayed verbatim; providers never parse it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: talon/providers/llm/
class ILLMProvider(ABC):
    """Contract for the external generation service."""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a completion for an ordered message list.

        Parameters
        ----------
        messages:
            Dicts with ``role`` (``"system"``, ``"user"`` or ``"assistant"``)
            and ``content`` keys, oldest first.  At most one system message,
            and only in first position.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        talon.utils.errors.LLMError
            If the API call fails, times out, or returns no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
