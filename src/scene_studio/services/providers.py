"""Provider selection from settings."""

from scene_studio.adapters.llm import (
    LLMProvider,
    OpenAIProvider,
    StubLLMProvider,
)
from scene_studio.adapters.video_gen import StubVideoGenProvider, VideoGenProvider
from scene_studio.adapters.voiceover import (
    ElevenLabsProvider,
    StubVoiceoverProvider,
    VoiceoverProvider,
)
from scene_studio.config import settings


def get_llm_provider(name: str | None = None) -> LLMProvider:
    """Get an LLM provider by name, defaulting to the configured one.

    ``veo`` only generates video, so its text calls go to Gemini.
    """
    provider = (name or settings.llm_provider).lower()

    if provider == "openai":
        return OpenAIProvider()
    elif provider in ("gemini", "veo"):
        from scene_studio.adapters.llm.gemini import GeminiProvider

        return GeminiProvider()
    else:
        return StubLLMProvider()


def get_voiceover_provider() -> VoiceoverProvider:
    """Get the configured voice synthesis provider."""
    provider = settings.voiceover_provider.lower()

    if provider == "elevenlabs":
        return ElevenLabsProvider()
    else:
        return StubVoiceoverProvider()


def get_video_gen_provider() -> VideoGenProvider:
    """Get the configured external video provider."""
    provider = settings.video_gen_provider.lower()

    if provider == "veo":
        from scene_studio.adapters.video_gen.veo import VeoProvider

        return VeoProvider()
    else:
        return StubVideoGenProvider()
