"""Stub video generation provider for testing."""

from uuid import uuid4

from scene_studio.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenStatus,
    VideoGenSubmission,
)
from scene_studio.logging import get_logger

logger = get_logger(__name__)


class StubVideoGenProvider(VideoGenProvider):
    """Accepts every job and reports it finished on the first poll."""

    @property
    def name(self) -> str:
        return "stub"

    async def submit(self, request: VideoGenRequest) -> VideoGenSubmission:
        operation_name = f"operations/stub-{uuid4().hex}"
        logger.info("stub_video_generation_submitted", operation_name=operation_name)
        return VideoGenSubmission(operation_name=operation_name, metadata={"prompt": request.prompt})

    async def check_status(self, operation_name: str) -> VideoGenStatus:
        return VideoGenStatus(
            done=True,
            video_uris=[f"https://example.invalid/{operation_name.rsplit('/', 1)[-1]}.mp4"],
        )
