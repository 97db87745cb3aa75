"""LLM provider adapters."""

from scene_studio.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from scene_studio.adapters.llm.openai import OpenAIProvider
from scene_studio.adapters.llm.stub import StubLLMProvider

__all__ = [
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "StubLLMProvider",
]
