"""Generation (LLM) provider implementations: OpenAI-compatible and Anthropic."""

from talon.providers.llm.anthropic_provider import AnthropicLLMProvider
from talon.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
