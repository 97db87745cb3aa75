"""Domain enumerations."""

from enum import StrEnum


class ProjectStatus(StrEnum):
    """Lifecycle status of a project."""

    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class PreviewStatus(StrEnum):
    """State of the local preview render."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProjectStyle(StrEnum):
    """Visual styles a project can be generated in."""

    REALISTIC_4K = "4k-realistic"
    CLAY = "clay"
    CINEMATIC = "cinematic"
    BRICK = "brick"
    GRUDGE = "grudge"
    COMIC_BOOK = "comic-book"
    MUPPET = "muppet"
    GHIBLI = "ghibli"
    PLAYGROUND = "playground"
    VOXEL = "voxel"
    ANIME = "anime"
    PIXER_3D = "pixer-3d"


class MediaType(StrEnum):
    """Kind of media attached to a scene."""

    IMAGE = "image"
    VIDEO = "video"


class VideoJobStatus(StrEnum):
    """Status reported for external video generation."""

    COMPLETED = "completed"
    PROCESSING = "processing"
    PENDING = "pending"
    FAILED = "failed"
