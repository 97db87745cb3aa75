"""Preview render tasks."""

from typing import Any
from uuid import UUID

from scene_studio.db.session import get_session_context
from scene_studio.domain.errors import NotFoundError
from scene_studio.logging import get_logger, log_context
from scene_studio.services.preview_renderer import PreviewRenderer, expire_stale_previews
from scene_studio.utils import run_async
from scene_studio.worker import celery_app

logger = get_logger(__name__)


@celery_app.task(bind=True, name="preview.render_project")
def render_project_preview_task(self: Any, project_id: str) -> dict[str, Any]:
    """Render, upload and record a project preview.

    Render failures are recorded on the project and reported in the result;
    the task itself only fails for a missing project.

    Args:
        project_id: UUID of the project

    Returns:
        Dict with the final preview state
    """
    with log_context(task_id=self.request.id, project_id=project_id):
        logger.info("preview_task_started")

        try:
            snapshot = run_async(PreviewRenderer().render(UUID(project_id)))
        except NotFoundError:
            logger.warning("preview_task_project_missing")
            return {"success": False, "project_id": project_id, "error": "Project not found"}

        logger.info("preview_task_finished", status=snapshot.status, progress=snapshot.progress)

    return {
        "success": snapshot.status == "completed",
        "project_id": project_id,
        "status": snapshot.status,
        "preview_uri": snapshot.preview_uri,
        "progress": snapshot.progress,
        "message": snapshot.message,
    }


@celery_app.task(name="preview.expire_stale")
def expire_stale_previews_task() -> dict[str, Any]:
    """Fail previews whose render never finished (beat schedule)."""
    with get_session_context() as session:
        expired = expire_stale_previews(session)

    if expired:
        logger.info("stale_previews_expired", count=len(expired))

    return {"expired": [str(project_id) for project_id in expired]}
