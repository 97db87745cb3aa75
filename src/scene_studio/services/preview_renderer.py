"""Local preview rendering.

Turns a project's ordered scenes into one MP4: one FFmpeg-encoded segment per
scene (sequentially), a concatenation pass, then an upload to object storage
under ``previews/``. State lives on the project row:

    pending -> processing -> completed | failed

Encoded segments are cached by a hash of everything that shapes them, so a
re-render after a small edit only encodes the scenes that changed.

Progress is committed after every segment (capped at 90 until the upload
finishes) so pollers see it mid-run. Any failure ends the run in ``failed``
with a message and leaves progress at its last committed value.
"""

import hashlib
import json
import shutil
import tempfile
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from scene_studio.config import settings
from scene_studio.db.models import ProjectModel, SceneModel
from scene_studio.db.session import get_session_context
from scene_studio.domain.enums import MediaType, PreviewStatus
from scene_studio.domain.errors import NotFoundError, RenderError
from scene_studio.domain.models import PreviewSnapshot
from scene_studio.logging import get_logger
from scene_studio.services.storage import ObjectStorage, get_object_storage
from scene_studio.utils.ffmpeg import (
    FFmpegError,
    FFmpegRunner,
    SegmentSpec,
    build_concat_copy_args,
    build_concat_reencode_args,
    build_segment_args,
    write_concat_list,
)
from scene_studio.utils.media import resolve_media

logger = get_logger(__name__)

NO_SCENES_MESSAGE = "No scenes to render"
GENERIC_FAILURE_MESSAGE = "Preview failed"
STALE_PREVIEW_MESSAGE = "Preview render timed out"
PREVIEW_KEY_PREFIX = "previews"
SEGMENT_PROGRESS_SHARE = 90

SessionFactory = Callable[[], AbstractContextManager[Session]]


@dataclass
class _SceneInput:
    """Detached copy of the scene fields the encoder needs."""

    scene_number: int
    duration: float
    media_type: str | None
    media_uri: str | None
    trim_start: float | None
    trim_end: float | None
    audio_uri: str | None


def segment_cache_key(scene: _SceneInput, width: int, height: int, fps: int) -> str:
    """Content hash of a segment's render inputs.

    The scene number is left out so a moved scene still hits the cache.
    """
    payload = json.dumps(
        [
            scene.duration,
            scene.media_type,
            scene.media_uri,
            scene.trim_start,
            scene.trim_end,
            scene.audio_uri,
            width,
            height,
            fps,
        ]
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def segment_progress(done: int, total: int) -> int:
    """Progress after ``done`` of ``total`` segments."""
    return round(done / total * SEGMENT_PROGRESS_SHARE)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def preview_is_stale(project: ProjectModel, now: datetime | None = None) -> bool:
    """True for a processing preview whose render has outlived its time limit."""
    if project.preview_status != PreviewStatus.PROCESSING.value or project.preview_started_at is None:
        return False
    age = (now or datetime.now(timezone.utc)) - _as_utc(project.preview_started_at)
    return age.total_seconds() >= settings.preview_stale_after_seconds


def expire_stale_previews(session: Session, now: datetime | None = None) -> list[UUID]:
    """Fail every preview stuck in processing past the stale limit.

    Progress is left where the dead render committed it. The caller commits.
    """
    processing = session.execute(
        select(ProjectModel).where(ProjectModel.preview_status == PreviewStatus.PROCESSING.value)
    ).scalars()

    expired: list[UUID] = []
    for project in processing:
        if not preview_is_stale(project, now):
            continue
        project.preview_status = PreviewStatus.FAILED.value
        project.preview_message = STALE_PREVIEW_MESSAGE
        expired.append(project.id)
        logger.warning(
            "preview_expired",
            project_id=str(project.id),
            task_id=project.preview_task_id,
            progress=project.preview_progress,
        )

    session.flush()
    return expired


def preview_snapshot(project: ProjectModel) -> PreviewSnapshot:
    return PreviewSnapshot(
        status=project.preview_status,
        preview_uri=project.preview_uri,
        progress=project.preview_progress,
        message=project.preview_message,
        task_id=project.preview_task_id,
    )


class PreviewRenderer:
    """Runs the preview state machine for one project at a time."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session_context,
        runner: FFmpegRunner | None = None,
        storage: ObjectStorage | None = None,
        width: int | None = None,
        height: int | None = None,
        fps: int | None = None,
        cache_dir: Path | str | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.runner = runner or FFmpegRunner()
        self.storage = storage or get_object_storage()
        self.width = width or settings.preview_width
        self.height = height or settings.preview_height
        self.fps = fps or settings.preview_fps
        if cache_dir is None:
            cache_dir = settings.preview_segment_cache_dir
        self.cache_dir = Path(cache_dir) if cache_dir else None

    async def render(self, project_id: UUID) -> PreviewSnapshot:
        """Render and upload a preview for a project.

        Never raises for render failures; they end in ``failed``.

        Raises:
            NotFoundError: If the project does not exist
        """
        scenes = self._start(project_id)
        if not scenes:
            logger.warning("preview_no_scenes", project_id=str(project_id))
            return self._finish(project_id, PreviewStatus.FAILED, message=NO_SCENES_MESSAGE)

        logger.info("preview_render_started", project_id=str(project_id), scenes=len(scenes))

        try:
            with tempfile.TemporaryDirectory(prefix="preview-") as tmp:
                workdir = Path(tmp)
                segments = await self._render_segments(project_id, scenes, workdir)
                output = await self._concat(project_id, segments, workdir)
                data = output.read_bytes()

            preview_uri = await self.storage.put(
                data, "video/mp4", PREVIEW_KEY_PREFIX, filename="preview.mp4"
            )
        except Exception as e:
            logger.error("preview_render_failed", project_id=str(project_id), error=str(e))
            return self._finish(
                project_id, PreviewStatus.FAILED, message=str(e) or GENERIC_FAILURE_MESSAGE
            )

        logger.info(
            "preview_render_completed",
            project_id=str(project_id),
            preview_uri=preview_uri,
            size=len(data),
        )
        return self._finish(
            project_id, PreviewStatus.COMPLETED, progress=100, preview_uri=preview_uri
        )

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _render_segments(
        self, project_id: UUID, scenes: list[_SceneInput], workdir: Path
    ) -> list[Path]:
        segments: list[Path] = []
        total = len(scenes)

        for index, scene in enumerate(scenes):
            output_path = workdir / f"segment-{index + 1:03d}.mp4"
            cached = self._cached_segment(scene)
            hit = cached is not None and cached.is_file()
            try:
                if hit:
                    shutil.copyfile(cached, output_path)
                else:
                    await self._encode_segment(scene, output_path, workdir)
                    if cached is not None:
                        self._store_segment(output_path, cached)
            except Exception as e:
                raise RenderError(f"Failed to render scene {scene.scene_number}: {e}") from e

            segments.append(output_path)
            progress = segment_progress(index + 1, total)
            self._set_progress(project_id, progress)

            logger.info(
                "preview_segment_rendered",
                project_id=str(project_id),
                scene_number=scene.scene_number,
                progress=progress,
                cached=hit,
            )

        return segments

    async def _encode_segment(self, scene: _SceneInput, output_path: Path, workdir: Path) -> None:
        is_image = scene.media_type == MediaType.IMAGE.value
        media_path = await resolve_media(scene.media_uri, workdir, ".png" if is_image else ".mp4")
        audio_path = await resolve_media(scene.audio_uri, workdir, ".mp3")

        spec = SegmentSpec(
            output_path=output_path,
            duration=scene.duration,
            width=self.width,
            height=self.height,
            fps=self.fps,
            media_path=media_path,
            media_type=MediaType.IMAGE.value if is_image else MediaType.VIDEO.value,
            trim_start=scene.trim_start,
            trim_end=scene.trim_end,
            audio_path=audio_path,
        )
        await self.runner.run(build_segment_args(spec))

    def _cached_segment(self, scene: _SceneInput) -> Path | None:
        if self.cache_dir is None:
            return None
        key = segment_cache_key(scene, self.width, self.height, self.fps)
        return self.cache_dir / f"{key}.mp4"

    def _store_segment(self, output_path: Path, cached: Path) -> None:
        cached.parent.mkdir(parents=True, exist_ok=True)
        # Readers only ever see a complete segment
        partial = cached.with_suffix(f".{uuid4().hex}.part")
        shutil.copyfile(output_path, partial)
        partial.replace(cached)

    async def _concat(self, project_id: UUID, segments: list[Path], workdir: Path) -> Path:
        list_path = write_concat_list(segments, workdir / "segments.txt")
        output = workdir / "preview.mp4"

        try:
            await self.runner.run(build_concat_copy_args(list_path, output))
        except FFmpegError as e:
            logger.warning("preview_concat_fallback", project_id=str(project_id), error=str(e))
            await self.runner.run(build_concat_reencode_args(list_path, output))

        return output

    # -------------------------------------------------------------------------
    # State persistence
    # -------------------------------------------------------------------------

    def _start(self, project_id: UUID) -> list[_SceneInput]:
        """Load scenes and enter ``processing`` when there is anything to render."""
        with self.session_factory() as session:
            project = session.get(ProjectModel, project_id)
            if project is None:
                raise NotFoundError("Project not found")

            rows = session.execute(
                select(SceneModel)
                .where(SceneModel.project_id == project_id)
                .order_by(SceneModel.scene_number)
            ).scalars()
            scenes = [
                _SceneInput(
                    scene_number=row.scene_number,
                    duration=row.duration or 5.0,
                    media_type=row.media_type,
                    media_uri=row.media_uri,
                    trim_start=row.media_trim_start,
                    trim_end=row.media_trim_end,
                    audio_uri=row.audio_uri,
                )
                for row in rows
            ]

            if scenes:
                project.preview_status = PreviewStatus.PROCESSING.value
                project.preview_progress = 0
                project.preview_message = None
                project.preview_started_at = datetime.now(timezone.utc)

        return scenes

    def _set_progress(self, project_id: UUID, progress: int) -> None:
        with self.session_factory() as session:
            session.execute(
                update(ProjectModel)
                .where(ProjectModel.id == project_id)
                .values(preview_progress=progress)
            )

    def _finish(
        self,
        project_id: UUID,
        status: PreviewStatus,
        *,
        message: str | None = None,
        progress: int | None = None,
        preview_uri: str | None = None,
    ) -> PreviewSnapshot:
        with self.session_factory() as session:
            project = session.get(ProjectModel, project_id)
            if project is None:
                raise NotFoundError("Project not found")

            project.preview_status = status.value
            project.preview_message = message
            if progress is not None:
                project.preview_progress = progress
            if preview_uri is not None:
                project.preview_uri = preview_uri

            session.flush()
            snapshot = preview_snapshot(project)

        return snapshot
