"""Base interface for external video generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class VideoGenRequest:
    """Request for a full generated video."""

    prompt: str
    duration_seconds: int = 8
    aspect_ratio: str = "9:16"
    negative_prompt: str | None = None
    options: dict[str, Any] | None = None


@dataclass
class VideoGenSubmission:
    """Handle for a submitted long-running generation."""

    operation_name: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class VideoGenStatus:
    """Poll result for a long-running generation."""

    done: bool
    video_uris: list[str] = field(default_factory=list)
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class VideoGenProvider(ABC):
    """Abstract base class for video generation providers.

    Generation is split in two so a request never blocks on the provider:
    ``submit`` starts the job and returns its operation name, ``check_status``
    polls it.

    Implementations:
    - VeoProvider: Google Veo through google-genai
    - StubVideoGenProvider: Completes instantly with a fake URI
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def submit(self, request: VideoGenRequest) -> VideoGenSubmission:
        """Start a generation job.

        Raises:
            Exception: Provider errors propagate to the caller
        """
        ...

    @abstractmethod
    async def check_status(self, operation_name: str) -> VideoGenStatus:
        """Poll a job started by ``submit``."""
        ...

    async def health_check(self) -> bool:
        return True
