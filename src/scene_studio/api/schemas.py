"""Request and response models shared by the project routes.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from scene_studio.db.models import ProjectModel, SceneModel
from scene_studio.domain.enums import ProjectStatus, ProjectStyle
from scene_studio.domain.models import (
    GeneratedScene,
    PreviewSnapshot,
    SceneStats,
    VideoJobSnapshot,
)
from scene_studio.utils.media import is_supported_media_uri


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Requests
# =============================================================================


class CreateProjectRequest(CamelModel):
    """Request to create a project."""

    title: str = Field(..., min_length=1, max_length=200)
    topic: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=5000)
    script: str | None = Field(None, max_length=20000)
    style: ProjectStyle | None = None
    generate_scenes: bool = False
    scene_count: int | None = Field(None, ge=1, le=20)
    refine: bool = False
    provider: str | None = Field(None, max_length=50)
    scenes: list[dict[str, Any]] | None = None


class UpdateProjectRequest(CamelModel):
    """Request to update a project."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    status: ProjectStatus | None = None
    style: ProjectStyle | None = None


class GenerateScenesRequest(CamelModel):
    """Standalone scene generation."""

    script: str = Field(..., min_length=1, max_length=20000)
    topic: str | None = Field(None, max_length=500)
    scene_count: int | None = Field(None, ge=1, le=20)
    style: ProjectStyle | None = None
    refine: bool = False
    provider: str | None = Field(None, max_length=50)
    create_project: bool = False
    title: str | None = Field(None, min_length=1, max_length=200)


class SceneMediaFields(CamelModel):
    narration: str | None = Field(None, max_length=5000)
    caption_text: str | None = Field(None, max_length=2000)
    timing_plan: dict[str, Any] | None = None
    image_prompt: str | None = Field(None, max_length=1000)
    b_roll_prompt: str | None = Field(None, max_length=1000)
    media_type: Literal["image", "video"] | None = None
    media_uri: str | None = None
    media_trim_start: float | None = Field(None, ge=0)
    media_trim_end: float | None = Field(None, ge=0)
    media_animation: str | None = Field(None, max_length=50)
    audio_uri: str | None = None

    @field_validator("media_uri", "audio_uri")
    @classmethod
    def check_media_uri(cls, value: str | None) -> str | None:
        if value and not is_supported_media_uri(value):
            raise ValueError("must be a data: URI or an http(s) URL")
        return value


class CreateSceneRequest(SceneMediaFields):
    """Request to add a scene, appended unless a position is given."""

    description: str = Field(..., min_length=1, max_length=2000)
    duration: float = Field(5.0, ge=1, le=6)
    position: int | None = Field(None, ge=1)


class UpdateSceneRequest(SceneMediaFields):
    """Partial scene update; only fields present in the body change."""

    description: str | None = Field(None, min_length=1, max_length=2000)
    duration: float | None = Field(None, ge=1, le=6)


class ReorderScenesRequest(CamelModel):
    """The complete new order of a project's scenes."""

    scene_ids: list[str]


class RegenerateSceneRequest(CamelModel):
    context: str | None = Field(None, max_length=10000)
    instructions: str | None = Field(None, max_length=2000)
    script: str | None = Field(None, max_length=20000)
    topic: str | None = Field(None, max_length=500)
    provider: str | None = Field(None, max_length=50)


class SynthesizeVoiceRequest(CamelModel):
    voice: str | None = Field(None, max_length=100)
    text: str | None = Field(None, max_length=5000)


# =============================================================================
# Responses
# =============================================================================


class SceneResponse(CamelModel):
    """Scene response model."""

    id: str
    scene_number: int
    description: str
    narration: str | None = None
    caption_text: str | None = None
    timing_plan: dict[str, Any] | None = None
    image_prompt: str
    b_roll_prompt: str
    duration: float
    media_type: str | None = None
    media_uri: str | None = None
    media_trim_start: float | None = None
    media_trim_end: float | None = None
    media_animation: str | None = None
    audio_uri: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, scene: SceneModel) -> "SceneResponse":
        return cls(
            id=str(scene.id),
            scene_number=scene.scene_number,
            description=scene.description,
            narration=scene.narration,
            caption_text=scene.caption_text,
            timing_plan=scene.timing_plan,
            image_prompt=scene.image_prompt or "",
            b_roll_prompt=scene.b_roll_prompt or "",
            duration=scene.duration,
            media_type=scene.media_type,
            media_uri=scene.media_uri,
            media_trim_start=scene.media_trim_start,
            media_trim_end=scene.media_trim_end,
            media_animation=scene.media_animation,
            audio_uri=scene.audio_uri,
            created_at=scene.created_at,
            updated_at=scene.updated_at,
        )


class ProjectSummaryResponse(CamelModel):
    """Project without its scenes, as returned by listings."""

    id: str
    title: str
    topic: str
    description: str | None
    style: str
    status: str
    video_uri: str | None
    preview_uri: str | None
    preview_status: str
    scenes_count: int
    total_duration: float
    average_scene_duration: float
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def fields_from(cls, project: ProjectModel, stats: SceneStats) -> dict[str, Any]:
        return {
            "id": str(project.id),
            "title": project.title,
            "topic": project.topic,
            "description": project.description,
            "style": project.style,
            "status": project.status,
            "video_uri": project.video_uri,
            "preview_uri": project.preview_uri,
            "preview_status": project.preview_status,
            "scenes_count": stats.scenes_count,
            "total_duration": stats.total_duration,
            "average_scene_duration": stats.average_scene_duration,
            "created_at": project.created_at,
            "updated_at": project.updated_at,
        }

    @classmethod
    def from_model(cls, project: ProjectModel, stats: SceneStats) -> "ProjectSummaryResponse":
        return cls(**cls.fields_from(project, stats))


class ProjectResponse(ProjectSummaryResponse):
    """Project with scripts and its ordered scenes."""

    script: str | None
    refined_script: str | None
    scenes: list[SceneResponse]

    @classmethod
    def from_project(
        cls, project: ProjectModel, scenes: list[SceneModel], stats: SceneStats
    ) -> "ProjectResponse":
        return cls(
            **cls.fields_from(project, stats),
            script=project.script,
            refined_script=project.refined_script,
            scenes=[SceneResponse.from_model(scene) for scene in scenes],
        )


class ProjectListResponse(CamelModel):
    """One page of projects."""

    items: list[ProjectSummaryResponse]
    next_cursor: str | None


class SceneOrderEntry(CamelModel):
    id: str
    scene_number: int


class ReorderScenesResponse(CamelModel):
    scenes: list[SceneOrderEntry]


class GeneratedSceneResponse(CamelModel):
    scene_number: int
    description: str
    image_prompt: str
    b_roll_prompt: str
    duration: float

    @classmethod
    def from_generated(cls, scene: GeneratedScene) -> "GeneratedSceneResponse":
        return cls(
            scene_number=scene.scene_number,
            description=scene.description,
            image_prompt=scene.image_prompt,
            b_roll_prompt=scene.b_roll_prompt,
            duration=scene.duration,
        )


class GenerateScenesResponse(CamelModel):
    scenes: list[GeneratedSceneResponse]
    script_used: str | None
    refined_script: str | None
    project_id: str | None = None


class PreviewStatusResponse(CamelModel):
    """Snapshot of the preview state machine."""

    status: str
    preview_uri: str | None
    progress: int
    message: str | None
    task_id: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: PreviewSnapshot) -> "PreviewStatusResponse":
        return cls(
            status=snapshot.status,
            preview_uri=snapshot.preview_uri,
            progress=snapshot.progress,
            message=snapshot.message,
            task_id=snapshot.task_id,
        )


class VideoStatusResponse(CamelModel):
    """State of external video generation."""

    status: str
    provider: str | None = None
    operation_name: str | None = None
    video_uri: str | None = None
    cached: bool = False
    message: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: VideoJobSnapshot) -> "VideoStatusResponse":
        return cls(
            status=snapshot.status,
            provider=snapshot.provider,
            operation_name=snapshot.operation_name,
            video_uri=snapshot.video_uri,
            cached=snapshot.cached,
            message=snapshot.metadata.get("message"),
        )
