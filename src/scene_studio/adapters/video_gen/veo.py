"""Google Veo video generation provider."""

import asyncio
from typing import Any

from google import genai
from google.genai import types

from scene_studio.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenStatus,
    VideoGenSubmission,
)
from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)


class VeoProvider(VideoGenProvider):
    """Google Veo via the google-genai SDK.

    Veo 3.1 accepts 4, 6 or 8 second clips; older models take 5-8 seconds.
    The SDK is synchronous, so every call runs in the default executor.
    """

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or settings.google_api_key
        self.model = model or settings.veo_model
        self._client: genai.Client | None = None

        if not self.api_key:
            logger.warning("veo_api_key_missing")

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ValueError("Google API key not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @property
    def name(self) -> str:
        return "veo"

    def _duration_for_model(self, requested: int) -> int:
        if "3.1" in self.model:
            return min([4, 6, 8], key=lambda x: abs(x - requested))
        return min(max(requested, 5), 8)

    async def submit(self, request: VideoGenRequest) -> VideoGenSubmission:
        """Submit a generate_videos operation and return its name."""
        duration_seconds = self._duration_for_model(request.duration_seconds)
        config_kwargs: dict[str, Any] = {
            "aspect_ratio": request.aspect_ratio,
            "number_of_videos": 1,
            "duration_seconds": duration_seconds,
        }
        if request.negative_prompt:
            config_kwargs["negative_prompt"] = request.negative_prompt

        logger.info(
            "veo_generation_submitting",
            prompt_length=len(request.prompt),
            aspect_ratio=request.aspect_ratio,
            duration_seconds=duration_seconds,
            model=self.model,
        )

        loop = asyncio.get_running_loop()
        operation = await loop.run_in_executor(
            None,
            lambda: self.client.models.generate_videos(
                model=self.model,
                prompt=request.prompt,
                config=types.GenerateVideosConfig(**config_kwargs),
            ),
        )

        logger.info("veo_generation_submitted", operation_name=operation.name)
        return VideoGenSubmission(
            operation_name=operation.name or "",
            metadata={"model": self.model, "duration_seconds": duration_seconds},
        )

    async def check_status(self, operation_name: str) -> VideoGenStatus:
        """Fetch the operation and extract generated video URIs when done."""
        loop = asyncio.get_running_loop()
        operation = await loop.run_in_executor(
            None,
            lambda: self.client.operations.get(
                operation=types.GenerateVideosOperation(name=operation_name)
            ),
        )

        logger.debug("veo_poll_status", operation_name=operation_name, done=operation.done)

        if not operation.done:
            return VideoGenStatus(done=False)

        if operation.error:
            message = operation.error.get("message") if isinstance(operation.error, dict) else None
            error_msg = f"Veo generation failed: {message or operation.error}"
            logger.error("veo_generation_failed", operation_name=operation_name, error=error_msg)
            return VideoGenStatus(done=True, error_message=error_msg)

        videos = (operation.response.generated_videos if operation.response else None) or []
        uris = [video.video.uri for video in videos if video.video and video.video.uri]

        logger.info("veo_generation_completed", operation_name=operation_name, videos=len(uris))
        return VideoGenStatus(done=True, video_uris=uris, metadata={"model": self.model})

    async def health_check(self) -> bool:
        if not self.api_key:
            return False
        try:
            self.client
            return True
        except Exception as e:
            logger.error("veo_health_check_failed", error=str(e))
            return False
