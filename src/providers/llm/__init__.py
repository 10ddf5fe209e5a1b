"""LLM provider implementations used for grounded answer generation."""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
