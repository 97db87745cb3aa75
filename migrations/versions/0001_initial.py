"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Projects table
    op.create_table(
        "projects",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("topic", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("script", sa.Text(), nullable=True),
        sa.Column("refined_script", sa.Text(), nullable=True),
        sa.Column("style", sa.String(50), nullable=False, server_default="cinematic"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("video_uri", sa.Text(), nullable=True),
        sa.Column("video_provider", sa.String(50), nullable=True),
        sa.Column("video_operation_name", sa.String(255), nullable=True),
        sa.Column("preview_uri", sa.Text(), nullable=True),
        sa.Column("preview_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("preview_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("preview_message", sa.Text(), nullable=True),
        sa.Column("preview_task_id", sa.String(255), nullable=True),
        sa.Column("preview_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scenes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_duration", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_user_updated", "projects", ["user_id", "updated_at", "id"])

    # Scenes table
    op.create_table(
        "project_scenes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=False),
        sa.Column("scene_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("caption_text", sa.Text(), nullable=True),
        sa.Column("timing_plan", postgresql.JSONB(), nullable=True),
        sa.Column("image_prompt", sa.Text(), nullable=True),
        sa.Column("b_roll_prompt", sa.Text(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=False, server_default="5"),
        sa.Column("media_type", sa.String(10), nullable=True),
        sa.Column("media_uri", sa.Text(), nullable=True),
        sa.Column("media_trim_start", sa.Float(), nullable=True),
        sa.Column("media_trim_end", sa.Float(), nullable=True),
        sa.Column("media_animation", sa.String(50), nullable=True),
        sa.Column("audio_uri", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("project_id", "scene_number", name="uq_project_scene_number"),
        sa.CheckConstraint("scene_number >= 1", name="ck_scene_number_positive"),
        sa.CheckConstraint("duration >= 1 AND duration <= 6", name="ck_scene_duration_range"),
    )
    op.create_index("ix_project_scenes_project_id", "project_scenes", ["project_id"])

    # AI usage audit table
    op.create_table(
        "ai_usage",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("ai_model", sa.String(100), nullable=True),
        sa.Column("prompt_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_usage_user_id", "ai_usage", ["user_id"])
    op.create_index("ix_ai_usage_action", "ai_usage", ["action"])
    op.create_index("ix_ai_usage_created_at", "ai_usage", ["created_at"])


def downgrade() -> None:
    op.drop_table("ai_usage")
    op.drop_table("project_scenes")
    op.drop_table("projects")
