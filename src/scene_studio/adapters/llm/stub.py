"""Stub LLM provider for testing and offline development."""

import json
import re

from scene_studio.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from scene_studio.logging import get_logger

logger = get_logger(__name__)

_SCENE_COUNT_RE = re.compile(r"Create (\d+) short scenes")
_REGENERATE_RE = re.compile(r"Regenerate scene (\d+)")

_BEATS = [
    "Opening shot establishing the mood",
    "A closer look at the central subject",
    "The tension builds with a surprising detail",
    "A turning point changes everything",
    "The payoff lands with a final strong image",
]


def _stub_scene(number: int) -> dict[str, object]:
    beat = _BEATS[(number - 1) % len(_BEATS)]
    return {
        "sceneNumber": number,
        "description": f"Scene {number}: {beat}.",
        "imagePrompt": f"Cinematic still, {beat.lower()}, dramatic lighting",
        "bRollPrompt": f"Slow push-in footage supporting: {beat.lower()}",
        "duration": 5,
    }


class StubLLMProvider(LLMProvider):
    """Returns well-formed scene JSON shaped after the prompt it receives.

    - "Create N short scenes" yields ``{"scenes": [...]}`` with N entries
    - "Regenerate scene N" yields ``{"scene": {...}}``
    - anything asking for a script yields ``{"script": "..."}``
    """

    @property
    def name(self) -> str:
        return "stub"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Return a mock completion response."""
        user_message = next((m.content for m in reversed(messages) if m.role == "user"), "")

        logger.info("stub_llm_complete", message_count=len(messages), json_mode=json_mode)

        if match := _SCENE_COUNT_RE.search(user_message):
            count = int(match.group(1))
            payload: dict[str, object] = {"scenes": [_stub_scene(i + 1) for i in range(count)]}
        elif match := _REGENERATE_RE.search(user_message):
            payload = {"scene": _stub_scene(int(match.group(1)))}
        else:
            payload = {"script": f"Refined narration: {user_message[-200:].strip()}"}

        content = json.dumps(payload)
        prompt_tokens = len(user_message.split())
        completion_tokens = len(content.split())

        return LLMResponse(
            content=content,
            model="stub-model",
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason="stop",
        )
