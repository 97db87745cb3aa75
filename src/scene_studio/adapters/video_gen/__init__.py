"""External video generation adapters."""

from scene_studio.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenStatus,
    VideoGenSubmission,
)
from scene_studio.adapters.video_gen.stub import StubVideoGenProvider
from scene_studio.adapters.video_gen.veo import VeoProvider

__all__ = [
    "StubVideoGenProvider",
    "VeoProvider",
    "VideoGenProvider",
    "VideoGenRequest",
    "VideoGenStatus",
    "VideoGenSubmission",
]
