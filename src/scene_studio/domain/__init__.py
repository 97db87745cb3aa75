"""Domain types shared across services."""

from scene_studio.domain.enums import MediaType, PreviewStatus, ProjectStatus, ProjectStyle
from scene_studio.domain.errors import (
    GenerationError,
    NotFoundError,
    RateLimitedError,
    RenderError,
    SceneStudioError,
    ValidationError,
)

__all__ = [
    "GenerationError",
    "MediaType",
    "NotFoundError",
    "PreviewStatus",
    "ProjectStatus",
    "ProjectStyle",
    "RateLimitedError",
    "RenderError",
    "SceneStudioError",
    "ValidationError",
]
