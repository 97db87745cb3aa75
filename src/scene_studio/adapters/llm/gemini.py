"""Google Gemini LLM provider."""

import asyncio
from typing import Any

from google import genai
from google.genai import types

from scene_studio.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)


class GeminiProvider(LLMProvider):
    """Gemini text generation through the google-genai client.

    The SDK is synchronous, so calls run in the default executor.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or settings.google_api_key
        self.model = model or settings.gemini_model
        self._client: genai.Client | None = None

        if not self.api_key:
            logger.warning("gemini_api_key_missing")

    @property
    def client(self) -> genai.Client:
        """Get or create the Gemini client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("Google API key not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @property
    def name(self) -> str:
        return f"gemini:{self.model}"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate completion using Gemini."""
        system_prompt: str | None = None
        contents: list[types.Content] = []
        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
            else:
                role = "model" if msg.role == "assistant" else "user"
                contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))

        config_kwargs: dict[str, Any] = {
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }
        if system_prompt:
            config_kwargs["system_instruction"] = system_prompt
        if json_mode:
            config_kwargs["response_mime_type"] = "application/json"
        config = types.GenerateContentConfig(**config_kwargs)

        logger.debug(
            "gemini_request",
            model=self.model,
            message_count=len(contents),
            json_mode=json_mode,
        )

        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None,
            lambda: self.client.models.generate_content(
                model=self.model,
                contents=contents,  # type: ignore[arg-type]
                config=config,
            ),
        )

        usage: dict[str, int] = {}
        metadata = getattr(response, "usage_metadata", None)
        if metadata:
            usage = {
                "prompt_tokens": getattr(metadata, "prompt_token_count", 0) or 0,
                "completion_tokens": getattr(metadata, "candidates_token_count", 0) or 0,
                "total_tokens": getattr(metadata, "total_token_count", 0) or 0,
            }

        finish_reason = str(response.candidates[0].finish_reason) if response.candidates else None
        content = response.text or ""
        if not content.strip():
            # Safety blocks come back as an empty candidate list or empty text
            logger.warning("gemini_empty_response", model=self.model, finish_reason=finish_reason)
            raise ValueError("Empty response from Gemini")

        logger.info("gemini_response", model=self.model, tokens_used=usage.get("total_tokens", 0))

        return LLMResponse(content=content, model=self.model, usage=usage, finish_reason=finish_reason)

    async def health_check(self) -> bool:
        return bool(self.api_key)
