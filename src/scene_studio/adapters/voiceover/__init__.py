"""Voice synthesis adapters."""

from scene_studio.adapters.voiceover.base import (
    VoiceoverProvider,
    VoiceoverRequest,
    VoiceoverResult,
)
from scene_studio.adapters.voiceover.elevenlabs import VOICE_ID_MAP, ElevenLabsProvider
from scene_studio.adapters.voiceover.stub import StubVoiceoverProvider

__all__ = [
    "VOICE_ID_MAP",
    "ElevenLabsProvider",
    "StubVoiceoverProvider",
    "VoiceoverProvider",
    "VoiceoverRequest",
    "VoiceoverResult",
]
