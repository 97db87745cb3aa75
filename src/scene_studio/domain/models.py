"""Domain models - plain dataclasses independent of the database."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AiUsageMetrics:
    """Token usage reported by one model call."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str

    @classmethod
    def from_usage(cls, usage: dict[str, int], model: str) -> "AiUsageMetrics | None":
        """Build metrics from a provider usage dict; None when nothing was reported."""
        if not usage:
            return None
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = usage.get("total_tokens")
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=int(total) if total else prompt + completion,
            model=model,
        )


@dataclass
class SceneDraft:
    """A scene that is about to be written to a project."""

    description: str
    scene_number: int | None = None
    narration: str | None = None
    image_prompt: str | None = None
    b_roll_prompt: str | None = None
    duration: float = 5.0
    caption_text: str | None = None
    timing_plan: dict[str, Any] | None = None
    media_type: str | None = None
    media_uri: str | None = None
    media_trim_start: float | None = None
    media_trim_end: float | None = None
    media_animation: str | None = None
    audio_uri: str | None = None


@dataclass
class GeneratedScene:
    """A normalized scene returned by the AI gateway."""

    scene_number: int
    description: str
    image_prompt: str
    b_roll_prompt: str
    duration: float

    def to_draft(self) -> SceneDraft:
        return SceneDraft(
            scene_number=self.scene_number,
            description=self.description,
            image_prompt=self.image_prompt,
            b_roll_prompt=self.b_roll_prompt,
            duration=self.duration,
        )


@dataclass
class SceneGenerationResult:
    """Outcome of a full scene generation call."""

    scenes: list[GeneratedScene]
    script_used: str | None = None
    refined_script: str | None = None
    usage: AiUsageMetrics | None = None
    refinement_usage: AiUsageMetrics | None = None


@dataclass
class SceneRegenerationResult:
    """Outcome of regenerating one scene."""

    scene: GeneratedScene
    usage: AiUsageMetrics | None = None


@dataclass
class SceneStats:
    """Aggregate numbers over a project's scenes."""

    scenes_count: int = 0
    total_duration: float = 0.0

    @property
    def average_scene_duration(self) -> float:
        return self.total_duration / self.scenes_count if self.scenes_count else 0.0


@dataclass
class PreviewSnapshot:
    """Point-in-time view of the preview state machine."""

    status: str
    preview_uri: str | None
    progress: int
    message: str | None
    task_id: str | None = None


@dataclass
class VideoJobSnapshot:
    """Point-in-time view of external video generation."""

    status: str
    provider: str | None = None
    operation_name: str | None = None
    video_uri: str | None = None
    cached: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
