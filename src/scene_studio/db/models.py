"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProjectModel(Base):
    """Scene-ordered video project owned by one user."""

    __tablename__ = "projects"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    topic: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    script: Mapped[str | None] = mapped_column(Text, nullable=True)
    refined_script: Mapped[str | None] = mapped_column(Text, nullable=True)
    style: Mapped[str] = mapped_column(String(50), nullable=False, default="cinematic")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft", index=True)

    # External video generation
    video_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    video_operation_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Local preview render state
    preview_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    preview_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    preview_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    preview_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    preview_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preview_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Cached scene aggregates (maintained by SceneStore.recount)
    scenes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    scenes: Mapped[list["SceneModel"]] = relationship(
        "SceneModel",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SceneModel.scene_number",
    )


class SceneModel(Base):
    """Scene (per project, contiguously numbered 1..N) ORM model."""

    __tablename__ = "project_scenes"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    project_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    scene_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    timing_plan: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    image_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    b_roll_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    media_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    media_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_trim_start: Mapped[float | None] = mapped_column(Float, nullable=True)
    media_trim_end: Mapped[float | None] = mapped_column(Float, nullable=True)
    media_animation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    audio_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("project_id", "scene_number", name="uq_project_scene_number"),
        CheckConstraint("scene_number >= 1", name="ck_scene_number_positive"),
        CheckConstraint("duration >= 1 AND duration <= 6", name="ck_scene_duration_range"),
    )

    # Relationships
    project: Mapped["ProjectModel"] = relationship("ProjectModel", back_populates="scenes")


class AiUsageModel(Base):
    """Append-only audit entry for one model call."""

    __tablename__ = "ai_usage"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    ai_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
