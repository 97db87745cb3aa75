"""Offline voice synthesis."""

from scene_studio.adapters.voiceover.base import (
    VoiceoverProvider,
    VoiceoverRequest,
    VoiceoverResult,
    estimate_speech_seconds,
)
from scene_studio.logging import get_logger

logger = get_logger(__name__)

STUB_AUDIO_PREFIX = b"STUB_AUDIO_DATA_"


class StubVoiceoverProvider(VoiceoverProvider):
    """Marker bytes derived from the narration; never calls out.

    Empty narration fails the same way a real provider rejects it.
    """

    @property
    def name(self) -> str:
        return "stub"

    async def generate(self, request: VoiceoverRequest) -> VoiceoverResult:
        if not request.text.strip():
            return VoiceoverResult.failure("Narration text is empty", provider=self.name)

        logger.debug("stub_voiceover_generated", text_length=len(request.text), voice=request.voice_id)

        return VoiceoverResult(
            success=True,
            audio_data=STUB_AUDIO_PREFIX + request.text.encode()[:100],
            duration_seconds=estimate_speech_seconds(request.text),
            metadata={"provider": self.name, "voice_id": request.voice_id or "default"},
        )
