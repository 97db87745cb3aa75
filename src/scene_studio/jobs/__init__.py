"""Background jobs (Celery tasks)."""

from scene_studio.jobs.preview import expire_stale_previews_task, render_project_preview_task

__all__ = ["expire_stale_previews_task", "render_project_preview_task"]
