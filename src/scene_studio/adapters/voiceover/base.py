"""Voice synthesis for scene narration.

A synthesized clip ends up on the scene as a ``data:`` URI in ``audio_uri``,
so results carry their MIME type alongside the raw bytes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from scene_studio.utils.media import to_data_uri

SPEAKING_WORDS_PER_MINUTE = 150


@dataclass
class VoiceoverRequest:
    """Narration for one scene."""

    text: str
    voice_id: str | None = None  # Preset name or provider voice id
    options: dict[str, Any] | None = None


@dataclass
class VoiceoverResult:
    success: bool
    audio_data: bytes | None = None
    mime_type: str = "audio/mpeg"
    duration_seconds: float | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str, **metadata: Any) -> "VoiceoverResult":
        return cls(success=False, error_message=message, metadata=metadata)

    @property
    def data_uri(self) -> str | None:
        """The audio as a base64 ``data:`` URI, or None when there is no audio."""
        if not self.audio_data:
            return None
        return to_data_uri(self.audio_data, self.mime_type)


class VoiceoverProvider(ABC):
    """Speaks scene narration.

    Providers report failures in the result instead of raising; the caller
    decides how a failed clip surfaces.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def generate(self, request: VoiceoverRequest) -> VoiceoverResult:
        """Synthesize one narration clip."""
        ...

    async def health_check(self) -> bool:
        return True


def estimate_speech_seconds(text: str, words_per_minute: int = SPEAKING_WORDS_PER_MINUTE) -> float:
    """Rough spoken length of a text."""
    return (len(text.split()) / words_per_minute) * 60
