"""OpenAI chat completions provider."""

from typing import Any

import httpx

from scene_studio.adapters.llm.base import USAGE_KEYS, LLMMessage, LLMProvider, LLMResponse
from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """Chat completions against OpenAI or any API-compatible endpoint.

    Scene prompts always run in JSON mode; a response cut off at the token
    limit is logged because its JSON will usually not parse.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout = timeout or settings.llm_timeout_seconds

        if not self.api_key:
            logger.warning("openai_api_key_missing")

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one chat completion.

        Raises:
            ValueError: If no API key is configured or the reply is empty
            httpx.HTTPStatusError: On a non-2xx answer
        """
        if not self.api_key:
            raise ValueError("OpenAI API key not configured")

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        logger.debug("openai_request", model=self.model, message_count=len(messages), json_mode=json_mode)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json=payload,
            )
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError:
                logger.error(
                    "openai_api_error",
                    status_code=response.status_code,
                    body=response.text[:500],
                    model=self.model,
                )
                raise
            data = response.json()

        choice = data["choices"][0]
        content = choice["message"].get("content") or ""
        finish_reason = choice.get("finish_reason")
        usage = data.get("usage") or {}

        if finish_reason == "length":
            logger.warning("openai_response_truncated", model=self.model, max_tokens=max_tokens)
        if not content.strip():
            raise ValueError("Empty response from OpenAI")

        logger.info(
            "openai_response",
            model=self.model,
            tokens_used=usage.get("total_tokens", 0),
            finish_reason=finish_reason,
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage={key: int(usage.get(key) or 0) for key in USAGE_KEYS} if usage else {},
            raw_response=data,
            finish_reason=finish_reason,
        )

    async def health_check(self) -> bool:
        """Check that the API key can list models."""
        if not self.api_key:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/models", headers=self._headers())
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("openai_health_check_failed", error=str(e))
            return False
