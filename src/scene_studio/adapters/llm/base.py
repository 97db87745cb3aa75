"""Base interface for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

# Keys every provider reports usage under
USAGE_KEYS = ("prompt_tokens", "completion_tokens", "total_tokens")


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    raw_response: dict[str, Any] | None = None
    finish_reason: str | None = None

    @property
    def has_usage(self) -> bool:
        """True when the provider reported any token counts."""
        return any(self.usage.get(key) for key in USAGE_KEYS)


@dataclass
class LLMMessage:
    """A message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations:
    - OpenAIProvider: OpenAI chat completions
    - GeminiProvider: Google Gemini via google-genai
    - StubLLMProvider: Deterministic scene JSON for tests and offline runs
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a completion from messages.

        Args:
            messages: List of conversation messages
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response
            json_mode: If True, request JSON output format

        Returns:
            LLMResponse with generated content
        """
        ...

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """One system + user exchange in JSON mode.

        The content is returned unparsed; models still wrap JSON in code
        fences now and then, so decoding is left to the caller.
        """
        return await self.complete(
            messages=[
                LLMMessage(role="system", content=system_prompt),
                LLMMessage(role="user", content=user_prompt),
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )

    async def health_check(self) -> bool:
        """Check if the provider is available."""
        return True
