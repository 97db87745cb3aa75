"""Tests for the preview worker task."""

from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from scene_studio.domain.errors import NotFoundError
from scene_studio.domain.models import PreviewSnapshot
from scene_studio.jobs.preview import expire_stale_previews_task, render_project_preview_task
from scene_studio.worker import celery_app
from scene_studio.services.lifecycle import enqueue_preview_task


class TestRenderProjectPreviewTask:
    """Tests for the preview.render_project task."""

    def test_task_is_registered(self):
        assert render_project_preview_task.name == "preview.render_project"

    def test_successful_render(self):
        """The task reports the final preview state."""
        project_id = str(uuid4())
        renderer = MagicMock()
        renderer.render = AsyncMock(
            return_value=PreviewSnapshot(
                status="completed",
                preview_uri="http://media.test/previews/x.mp4",
                progress=100,
                message=None,
            )
        )

        with patch("scene_studio.jobs.preview.PreviewRenderer", return_value=renderer):
            result = render_project_preview_task.apply(args=[project_id]).get()

        assert result["success"] is True
        assert result["status"] == "completed"
        assert result["preview_uri"] == "http://media.test/previews/x.mp4"
        assert str(renderer.render.call_args.args[0]) == project_id

    def test_failed_render_is_a_result(self):
        """A failed render is reported, not raised."""
        renderer = MagicMock()
        renderer.render = AsyncMock(
            return_value=PreviewSnapshot(
                status="failed", preview_uri=None, progress=30, message="Failed to render scene 2"
            )
        )

        with patch("scene_studio.jobs.preview.PreviewRenderer", return_value=renderer):
            result = render_project_preview_task.apply(args=[str(uuid4())]).get()

        assert result["success"] is False
        assert result["progress"] == 30
        assert result["message"] == "Failed to render scene 2"

    def test_missing_project(self):
        project_id = str(uuid4())
        renderer = MagicMock()
        renderer.render = AsyncMock(side_effect=NotFoundError("Project not found"))

        with patch("scene_studio.jobs.preview.PreviewRenderer", return_value=renderer):
            result = render_project_preview_task.apply(args=[project_id]).get()

        assert result == {"success": False, "project_id": project_id, "error": "Project not found"}


class TestEnqueuePreviewTask:
    def test_enqueue_uses_delay(self):
        """Queueing sends the project id as a string and returns the task id."""
        project_id = uuid4()

        with patch.object(render_project_preview_task, "delay", return_value=MagicMock(id="abc")) as delay:
            task_id = enqueue_preview_task(project_id)

        assert task_id == "abc"
        delay.assert_called_once_with(str(project_id))


class TestExpireStalePreviewsTask:
    def test_scheduled_on_beat(self):
        schedule = celery_app.conf.beat_schedule["expire-stale-previews"]

        assert schedule["task"] == expire_stale_previews_task.name == "preview.expire_stale"
        assert celery_app.conf.task_routes["preview.expire_stale"] == {"queue": "maintenance"}

    def test_reports_expired_projects(self):
        """The sweep runs in its own session and reports what it failed."""
        session = MagicMock()
        project_id = uuid4()

        @contextmanager
        def _session_context():
            yield session

        with (
            patch("scene_studio.jobs.preview.get_session_context", _session_context),
            patch("scene_studio.jobs.preview.expire_stale_previews", return_value=[project_id]) as expire,
        ):
            result = expire_stale_previews_task.apply().get()

        assert result == {"expired": [str(project_id)]}
        expire.assert_called_once_with(session)
