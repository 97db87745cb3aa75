"""ElevenLabs voice synthesis provider."""

import httpx

from scene_studio.adapters.voiceover.base import (
    VoiceoverProvider,
    VoiceoverRequest,
    VoiceoverResult,
    estimate_speech_seconds,
)
from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)

# Preset names exposed to clients, mapped to ElevenLabs voice ids
VOICE_ID_MAP = {
    "narrator-deep": "ErXwobaYiN019PkySvjV",
    "narrator-warm": "21m00Tcm4TlvDq8ikWAM",
    "storyteller-f": "EXAVITQu4vr4xnSDxMaL",
    "storyteller-m": "TxGEqnHWrfWFTfGW9XjX",
    "dramatic-f": "MF3mGyEYCl7XYWbV9V6O",
    "mysterious": "VR6AewLTigWG4xSOukaG",
    "upbeat-f": "AZnzlk1XvdvUeBnXmlld",
    "classic-m": "pNInz6obpgDQGcFmaJgB",
}
DEFAULT_VOICE = "narrator-deep"

VOICE_SETTINGS = {
    "stability": 0.3,
    "similarity_boost": 0.7,
    "style": 0.4,
}


def resolve_voice_id(voice: str | None) -> str:
    """Map a preset name to a voice id; unknown names get the default voice."""
    return VOICE_ID_MAP.get(voice or DEFAULT_VOICE, VOICE_ID_MAP[DEFAULT_VOICE])


class ElevenLabsProvider(VoiceoverProvider):
    """ElevenLabs streaming text-to-speech."""

    def __init__(
        self,
        api_key: str | None = None,
        model_id: str | None = None,
        base_url: str = "https://api.elevenlabs.io/v1",
    ) -> None:
        self.api_key = api_key or settings.elevenlabs_api_key
        self.model_id = model_id or settings.elevenlabs_model_id
        self.base_url = base_url

        if not self.api_key:
            logger.warning("elevenlabs_api_key_missing")

    @property
    def name(self) -> str:
        return "elevenlabs"

    async def generate(self, request: VoiceoverRequest) -> VoiceoverResult:
        """Synthesize narration via the streaming endpoint."""
        if not self.api_key:
            return VoiceoverResult.failure("ElevenLabs API key not configured", provider=self.name)

        voice_id = resolve_voice_id(request.voice_id)
        payload = {
            "text": request.text,
            "model_id": self.model_id,
            "voice_settings": VOICE_SETTINGS,
        }

        logger.info(
            "elevenlabs_generation_started",
            text_length=len(request.text),
            voice_id=voice_id,
            model=self.model_id,
        )

        try:
            async with httpx.AsyncClient(timeout=120.0) as client:
                response = await client.post(
                    f"{self.base_url}/text-to-speech/{voice_id}/stream",
                    headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
                audio_data = response.content
                mime_type = response.headers.get("content-type") or "audio/mpeg"
        except httpx.HTTPStatusError as e:
            error_msg = f"ElevenLabs API error: {e.response.status_code}"
            logger.error("elevenlabs_api_error", error=error_msg, body=e.response.text[:500])
            return VoiceoverResult.failure(error_msg, provider=self.name, status_code=e.response.status_code)
        except httpx.HTTPError as e:
            logger.error("elevenlabs_generation_error", error=str(e))
            return VoiceoverResult.failure(str(e), provider=self.name)

        duration = estimate_speech_seconds(request.text)
        logger.info(
            "elevenlabs_generation_completed",
            audio_size=len(audio_data),
            estimated_duration=duration,
        )

        return VoiceoverResult(
            success=True,
            audio_data=audio_data,
            mime_type=mime_type.split(";")[0].strip(),
            duration_seconds=duration,
            metadata={"provider": self.name, "voice_id": voice_id, "model_id": self.model_id},
        )

    async def health_check(self) -> bool:
        """Check that the API key is accepted."""
        if not self.api_key:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/user",
                    headers={"xi-api-key": self.api_key},
                )
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("elevenlabs_health_check_failed", error=str(e))
            return False
