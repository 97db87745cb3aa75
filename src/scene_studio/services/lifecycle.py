"""Project lifecycle orchestration.

``ProjectLifecycle`` is the one entry point the API uses for projects and
their scenes. It combines the AI gateway (behind the rate limiter), the
scene store, usage recording, the preview job queue and the external video
provider. Model calls always happen before any write, so a failed
generation never leaves partial scene data behind.

One instance is bound to one database session; mutating operations commit
before returning.
"""

import math
from collections.abc import Callable, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from scene_studio.adapters.llm.base import LLMProvider
from scene_studio.adapters.video_gen.base import VideoGenProvider, VideoGenRequest
from scene_studio.adapters.voiceover.base import VoiceoverProvider, VoiceoverRequest
from scene_studio.db.models import ProjectModel, SceneModel
from scene_studio.domain.enums import PreviewStatus, ProjectStatus, VideoJobStatus
from scene_studio.domain.errors import GenerationError, NotFoundError, ValidationError
from scene_studio.domain.models import (
    PreviewSnapshot,
    SceneDraft,
    SceneGenerationResult,
    SceneStats,
    VideoJobSnapshot,
)
from scene_studio.logging import get_logger
from scene_studio.presets.styles import DEFAULT_STYLE
from scene_studio.services.preview_renderer import preview_is_stale, preview_snapshot
from scene_studio.services.project_ai import (
    MAX_DESCRIPTION_LENGTH,
    MAX_PROMPT_LENGTH,
    MAX_SCENE_COUNT,
    MIN_SCENE_COUNT,
    ProjectAiGateway,
    build_scene_context,
    build_video_prompt,
    derive_topic_from_script,
    estimate_scene_count_from_script,
)
from scene_studio.services.providers import (
    get_llm_provider,
    get_video_gen_provider,
    get_voiceover_provider,
)
from scene_studio.services.rate_limiter import (
    SCENE_GENERATION_POLICY,
    SCENE_REGENERATION_POLICY,
    RateLimiter,
    get_rate_limiter,
)
from scene_studio.services.scene_store import SceneStore
from scene_studio.services.usage import (
    ACTION_CREATE_GENERATE_SCENES,
    ACTION_CREATE_REFINE_SCRIPT,
    ACTION_GENERATE_REFINE_SCRIPT,
    ACTION_GENERATE_SCENES,
    ACTION_REGENERATE_SCENE,
    UsageRecorder,
)

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50
MAX_INPUT_SCENES = 50
MAX_INPUT_DURATION = 6.0
MAX_TOPIC_LENGTH = 500

SORT_COLUMNS = {
    "updatedAt": ProjectModel.updated_at,
    "createdAt": ProjectModel.created_at,
    "title": ProjectModel.title,
}

PROJECT_UPDATABLE_FIELDS = ("title", "description", "status", "style")
SCENE_UPDATABLE_FIELDS = (
    "description",
    "narration",
    "caption_text",
    "timing_plan",
    "image_prompt",
    "b_roll_prompt",
    "duration",
    "media_type",
    "media_uri",
    "media_trim_start",
    "media_trim_end",
    "media_animation",
    "audio_uri",
)

PreviewEnqueuer = Callable[[UUID], str]


def enqueue_preview_task(project_id: UUID) -> str:
    """Send the preview render to the worker queue; returns the task id."""
    from scene_studio.jobs.preview import render_project_preview_task

    task = render_project_preview_task.delay(str(project_id))
    return task.id


def normalize_input_scenes(scenes: Sequence[Any] | None) -> list[SceneDraft]:
    """Turn caller-supplied scenes into drafts.

    At most 50 are considered; scenes without a description are dropped.
    Text fields are trimmed and truncated, durations clamped to [1, 6]
    (default 5). A positive ``sceneNumber`` orders the scene, otherwise its
    position in the input does.
    """
    drafts: list[SceneDraft] = []
    for index, raw in enumerate(list(scenes or [])[:MAX_INPUT_SCENES], start=1):
        data = raw if isinstance(raw, dict) else {}
        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            continue

        image_prompt = data.get("imagePrompt")
        b_roll_prompt = data.get("bRollPrompt")
        scene_number = data.get("sceneNumber")

        drafts.append(
            SceneDraft(
                scene_number=scene_number
                if isinstance(scene_number, int) and not isinstance(scene_number, bool) and scene_number > 0
                else index,
                description=description.strip()[:MAX_DESCRIPTION_LENGTH],
                image_prompt=image_prompt.strip()[:MAX_PROMPT_LENGTH]
                if isinstance(image_prompt, str)
                else None,
                b_roll_prompt=b_roll_prompt.strip()[:MAX_PROMPT_LENGTH]
                if isinstance(b_roll_prompt, str)
                else None,
                duration=_input_duration(data.get("duration")),
            )
        )
    return drafts


def _input_duration(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 5.0
    if isinstance(value, bool) or not math.isfinite(number):
        return 5.0
    return min(MAX_INPUT_DURATION, max(1.0, number))


def _check_scene_count(scene_count: int | None) -> None:
    if scene_count is not None and not MIN_SCENE_COUNT <= scene_count <= MAX_SCENE_COUNT:
        raise ValidationError(
            f"sceneCount must be between {MIN_SCENE_COUNT} and {MAX_SCENE_COUNT}"
        )


class ProjectLifecycle:
    """Orchestrates projects, scenes, AI generation, previews and video jobs."""

    def __init__(
        self,
        session: Session,
        llm: LLMProvider | None = None,
        rate_limiter: RateLimiter | None = None,
        voiceover: VoiceoverProvider | None = None,
        video_gen: VideoGenProvider | None = None,
        enqueue_preview: PreviewEnqueuer | None = None,
    ) -> None:
        self.session = session
        self.scenes = SceneStore(session)
        self.usage = UsageRecorder(session)
        self._llm = llm
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self._voiceover = voiceover
        self._video_gen = video_gen
        self.enqueue_preview = enqueue_preview or enqueue_preview_task

    # Providers are resolved lazily so read-only requests never build them

    def gateway(self, provider: str | None = None) -> ProjectAiGateway:
        if provider:
            return ProjectAiGateway(get_llm_provider(provider))
        if self._llm is None:
            self._llm = get_llm_provider()
        return ProjectAiGateway(self._llm)

    @property
    def voiceover(self) -> VoiceoverProvider:
        if self._voiceover is None:
            self._voiceover = get_voiceover_provider()
        return self._voiceover

    @property
    def video_gen(self) -> VideoGenProvider:
        if self._video_gen is None:
            self._video_gen = get_video_gen_provider()
        return self._video_gen

    # =========================================================================
    # Projects
    # =========================================================================

    async def create_project(
        self,
        user_id: str,
        title: str,
        topic: str | None = None,
        description: str | None = None,
        script: str | None = None,
        style: str | None = None,
        generate_scenes: bool = False,
        scene_count: int | None = None,
        scenes: Sequence[Any] | None = None,
        refine: bool = False,
        provider: str | None = None,
    ) -> ProjectModel:
        """Create a project, optionally with generated or supplied scenes.

        Supplied scenes win over generated ones; the two are never merged.

        Raises:
            ValidationError: No topic can be derived, or generation without a script
            RateLimitedError: Scene generation limit reached
            GenerationError: The model call failed
        """
        _check_scene_count(scene_count)
        provided = normalize_input_scenes(scenes)
        topic_value = (
            (topic or "").strip()
            or derive_topic_from_script(script)
            or derive_topic_from_script(provided[0].description if provided else None)
        )
        if not topic_value:
            raise ValidationError("Topic, script, or scene descriptions are required")

        style_value = style or DEFAULT_STYLE.value
        generation: SceneGenerationResult | None = None

        if generate_scenes:
            if not script:
                raise ValidationError("Script is required to generate scenes")
            self.rate_limiter.enforce(SCENE_GENERATION_POLICY, user_id)
            gateway = self.gateway(provider)
            generation = await gateway.generate_scenes(
                topic=topic_value,
                script=script,
                style=style_value,
                scene_count=scene_count or estimate_scene_count_from_script(script),
                refine=refine,
            )

        project = ProjectModel(
            user_id=user_id,
            title=title,
            topic=topic_value[:MAX_TOPIC_LENGTH],
            description=description,
            script=script,
            refined_script=(generation.refined_script or generation.script_used or script)
            if generation
            else None,
            style=style_value,
            status=ProjectStatus.IN_PROGRESS.value if generate_scenes else ProjectStatus.DRAFT.value,
        )
        self.session.add(project)
        self.session.flush()

        drafts = provided or (
            [scene.to_draft() for scene in generation.scenes] if generation else []
        )
        if drafts:
            self.scenes.insert_many(project.id, drafts)

        if generation:
            metadata = {"projectTitle": title, "provider": gateway.llm.name}
            self.usage.record(user_id, ACTION_CREATE_GENERATE_SCENES, generation.usage, metadata)
            self.usage.record(
                user_id, ACTION_CREATE_REFINE_SCRIPT, generation.refinement_usage, metadata
            )

        self.session.commit()
        self.session.refresh(project)

        logger.info(
            "project_created",
            project_id=str(project.id),
            user_id=user_id,
            scenes=len(drafts),
            generated=generation is not None,
        )
        return project

    def list_projects(
        self,
        user_id: str,
        limit: int | None = None,
        cursor: str | None = None,
        status: str | None = None,
        sort: str = "updatedAt",
        order: str = "desc",
    ) -> tuple[list[ProjectModel], str | None]:
        """Keyset-paginated listing of the caller's projects.

        The cursor is the id of the last project on the previous page.

        Returns:
            (projects, next cursor or None)

        Raises:
            ValidationError: Unknown cursor or sort field
        """
        page_size = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))
        column = SORT_COLUMNS.get(sort)
        if column is None:
            raise ValidationError("Invalid sort field")
        ascending = order == "asc"

        query = select(ProjectModel).where(ProjectModel.user_id == user_id)
        if status:
            query = query.where(ProjectModel.status == status)

        if cursor:
            cursor_project = self._find_owned(user_id, cursor)
            if cursor_project is None:
                raise ValidationError("Invalid cursor")
            cursor_value = getattr(cursor_project, column.key)
            if ascending:
                query = query.where(
                    or_(
                        column > cursor_value,
                        and_(column == cursor_value, ProjectModel.id > cursor_project.id),
                    )
                )
            else:
                query = query.where(
                    or_(
                        column < cursor_value,
                        and_(column == cursor_value, ProjectModel.id < cursor_project.id),
                    )
                )

        if ascending:
            query = query.order_by(column.asc(), ProjectModel.id.asc())
        else:
            query = query.order_by(column.desc(), ProjectModel.id.desc())

        rows = list(self.session.execute(query.limit(page_size + 1)).scalars().all())
        items = rows[:page_size]
        next_cursor = str(items[-1].id) if len(rows) > page_size else None
        return items, next_cursor

    def get_project(self, user_id: str, project_id: UUID) -> ProjectModel:
        return self._owned_project(user_id, project_id)

    def update_project(
        self, user_id: str, project_id: UUID, updates: dict[str, Any]
    ) -> ProjectModel:
        """Apply title / description / status / style changes."""
        project = self._owned_project(user_id, project_id)
        for field_name in PROJECT_UPDATABLE_FIELDS:
            if field_name in updates and updates[field_name] is not None:
                setattr(project, field_name, updates[field_name])

        self.session.commit()
        self.session.refresh(project)
        logger.info("project_updated", project_id=str(project_id), fields=sorted(updates))
        return project

    def delete_project(self, user_id: str, project_id: UUID) -> None:
        project = self._owned_project(user_id, project_id)
        self.session.delete(project)
        self.session.commit()
        logger.info("project_deleted", project_id=str(project_id), user_id=user_id)

    def project_stats(self, project: ProjectModel) -> SceneStats:
        return SceneStats(
            scenes_count=project.scenes_count or 0,
            total_duration=project.total_duration or 0.0,
        )

    # =========================================================================
    # Scenes
    # =========================================================================

    def list_scenes(self, project_id: UUID) -> list[SceneModel]:
        return self.scenes.list_scenes(project_id)

    def add_scene(
        self,
        user_id: str,
        project_id: UUID,
        draft: SceneDraft,
        position: int | None = None,
    ) -> SceneModel:
        self._owned_project(user_id, project_id)
        scene = self.scenes.insert(project_id, draft, position)
        self.session.commit()
        self.session.refresh(scene)
        return scene

    def update_scene(
        self, user_id: str, project_id: UUID, scene_id: UUID, updates: dict[str, Any]
    ) -> SceneModel:
        """Edit scene content. Scene numbers are not editable here."""
        self._owned_project(user_id, project_id)
        scene = self.scenes.get_scene(project_id, scene_id)

        for field_name in SCENE_UPDATABLE_FIELDS:
            if field_name in updates:
                setattr(scene, field_name, updates[field_name])
        self.session.flush()

        if "duration" in updates:
            self.scenes.recount(project_id)

        self.session.commit()
        self.session.refresh(scene)
        logger.info("scene_updated", project_id=str(project_id), scene_id=str(scene_id))
        return scene

    def delete_scene(self, user_id: str, project_id: UUID, scene_id: UUID) -> None:
        self._owned_project(user_id, project_id)
        self.scenes.delete(project_id, scene_id)
        self.session.commit()

    def reorder_scenes(
        self, user_id: str, project_id: UUID, scene_ids: Sequence[str]
    ) -> list[tuple[UUID, int]]:
        self._owned_project(user_id, project_id)
        order = self.scenes.reorder(project_id, scene_ids)
        self.session.commit()
        return order

    async def regenerate_scene(
        self,
        user_id: str,
        project_id: UUID,
        scene_id: UUID,
        context: str | None = None,
        instructions: str | None = None,
        script: str | None = None,
        topic: str | None = None,
        provider: str | None = None,
    ) -> SceneModel:
        """Rewrite one scene in place, keeping its position.

        Without an explicit context the target scene and its direct
        neighbours are sent as continuity context.
        """
        project = self._owned_project(user_id, project_id)
        scene = self.scenes.get_scene(project_id, scene_id)

        self.rate_limiter.enforce(SCENE_REGENERATION_POLICY, user_id)

        scene_context = context or build_scene_context(
            self.scenes.list_scenes(project_id), scene.scene_number
        )
        gateway = self.gateway(provider)
        result = await gateway.regenerate_scene(
            topic=topic or project.topic,
            scene_number=scene.scene_number,
            context=scene_context,
            instructions=instructions,
            script=script,
            style=project.style,
        )

        scene.description = result.scene.description
        scene.image_prompt = result.scene.image_prompt
        scene.b_roll_prompt = result.scene.b_roll_prompt
        scene.duration = result.scene.duration
        self.session.flush()
        self.scenes.recount(project_id)

        self.usage.record(
            user_id,
            ACTION_REGENERATE_SCENE,
            result.usage,
            {"projectId": str(project_id), "sceneId": str(scene_id)},
        )

        self.session.commit()
        self.session.refresh(scene)
        logger.info(
            "scene_regenerated",
            project_id=str(project_id),
            scene_id=str(scene_id),
            scene_number=scene.scene_number,
        )
        return scene

    async def synthesize_scene_voice(
        self,
        user_id: str,
        project_id: UUID,
        scene_id: UUID,
        voice: str | None = None,
        text: str | None = None,
    ) -> SceneModel:
        """Speak the scene narration and attach it as a data URI.

        Raises:
            GenerationError: If the voice provider fails
        """
        self._owned_project(user_id, project_id)
        scene = self.scenes.get_scene(project_id, scene_id)

        spoken = (text or scene.narration or scene.description or "").strip()
        if not spoken:
            raise ValidationError("Scene has no narration to synthesize")

        result = await self.voiceover.generate(VoiceoverRequest(text=spoken, voice_id=voice))
        if not result.success or result.data_uri is None:
            logger.error(
                "scene_voice_failed",
                project_id=str(project_id),
                scene_id=str(scene_id),
                error=result.error_message,
            )
            raise GenerationError("Failed to synthesize narration")

        scene.audio_uri = result.data_uri
        self.session.commit()
        self.session.refresh(scene)

        logger.info(
            "scene_voice_synthesized",
            project_id=str(project_id),
            scene_id=str(scene_id),
            provider=self.voiceover.name,
            audio_size=len(result.audio_data),
        )
        return scene

    # =========================================================================
    # Standalone generation
    # =========================================================================

    async def generate_scenes_standalone(
        self,
        user_id: str,
        script: str | None,
        topic: str | None = None,
        scene_count: int | None = None,
        style: str | None = None,
        refine: bool = False,
        provider: str | None = None,
        create_project: bool = False,
        title: str | None = None,
    ) -> tuple[SceneGenerationResult, ProjectModel | None]:
        """Generate scenes without an existing project.

        With ``create_project`` the scenes are saved into a new draft
        project, whose id the caller can return.
        """
        if not script:
            raise ValidationError("Script is required")
        _check_scene_count(scene_count)
        topic_value = (topic or "").strip() or derive_topic_from_script(script)
        if not topic_value:
            raise ValidationError("Script is required to derive a topic")

        self.rate_limiter.enforce(SCENE_GENERATION_POLICY, user_id)

        style_value = style or DEFAULT_STYLE.value
        gateway = self.gateway(provider)
        result = await gateway.generate_scenes(
            topic=topic_value,
            script=script,
            style=style_value,
            scene_count=scene_count or estimate_scene_count_from_script(script),
            refine=refine,
        )

        metadata = {"topic": topic_value, "provider": gateway.llm.name}
        self.usage.record(user_id, ACTION_GENERATE_SCENES, result.usage, metadata)
        self.usage.record(user_id, ACTION_GENERATE_REFINE_SCRIPT, result.refinement_usage, metadata)

        project: ProjectModel | None = None
        if create_project:
            project = ProjectModel(
                user_id=user_id,
                title=(title or topic_value)[:200],
                topic=topic_value[:MAX_TOPIC_LENGTH],
                script=script,
                refined_script=result.refined_script or result.script_used,
                style=style_value,
                status=ProjectStatus.DRAFT.value,
            )
            self.session.add(project)
            self.session.flush()
            self.scenes.insert_many(project.id, [scene.to_draft() for scene in result.scenes])

        self.session.commit()
        if project is not None:
            self.session.refresh(project)

        logger.info(
            "scenes_generated_standalone",
            user_id=user_id,
            scenes=len(result.scenes),
            project_id=str(project.id) if project else None,
        )
        return result, project

    # =========================================================================
    # Preview
    # =========================================================================

    def request_preview(self, user_id: str, project_id: UUID) -> PreviewSnapshot:
        """Queue a preview render unless a fresh one is already running."""
        project = self._owned_project(user_id, project_id)

        if self._preview_in_flight(project):
            logger.info(
                "preview_already_running",
                project_id=str(project_id),
                task_id=project.preview_task_id,
            )
            return preview_snapshot(project)

        task_id = self.enqueue_preview(project.id)

        # The task may already have run (eager mode) and moved the state on
        self.session.refresh(project)
        project.preview_task_id = task_id
        self.session.commit()
        self.session.refresh(project)

        logger.info("preview_enqueued", project_id=str(project_id), task_id=task_id)
        return preview_snapshot(project)

    def preview_status(self, user_id: str, project_id: UUID) -> PreviewSnapshot:
        return preview_snapshot(self._owned_project(user_id, project_id))

    def _preview_in_flight(self, project: ProjectModel) -> bool:
        return project.preview_status == PreviewStatus.PROCESSING.value and not preview_is_stale(project)

    # =========================================================================
    # External video generation
    # =========================================================================

    async def generate_video(self, user_id: str, project_id: UUID) -> VideoJobSnapshot:
        """Start external video generation, or report the existing job.

        A stored video is returned as a cached result; an outstanding
        operation is reported as processing without submitting another.
        """
        project = self._owned_project(user_id, project_id)
        scenes = self.scenes.list_scenes(project_id)
        if not scenes:
            raise ValidationError("Scenes are required to generate a video")

        if project.video_uri:
            return self._video_snapshot(project, VideoJobStatus.COMPLETED, cached=True)
        if project.video_operation_name:
            return self._video_snapshot(project, VideoJobStatus.PROCESSING)

        prompt = build_video_prompt(project.topic, project.style, scenes)
        try:
            submission = await self.video_gen.submit(VideoGenRequest(prompt=prompt))
        except Exception as e:
            logger.error("video_generation_submit_failed", project_id=str(project_id), error=str(e))
            raise GenerationError("Failed to start video generation") from e

        project.video_provider = self.video_gen.name
        project.video_operation_name = submission.operation_name
        project.status = ProjectStatus.IN_PROGRESS.value
        self.session.commit()
        self.session.refresh(project)

        logger.info(
            "video_generation_submitted",
            project_id=str(project_id),
            provider=project.video_provider,
            operation_name=submission.operation_name,
        )
        return self._video_snapshot(project, VideoJobStatus.PROCESSING)

    async def video_status(self, user_id: str, project_id: UUID) -> VideoJobSnapshot:
        """Poll the outstanding operation and store the video once ready."""
        project = self._owned_project(user_id, project_id)

        if project.video_uri:
            return self._video_snapshot(project, VideoJobStatus.COMPLETED, cached=True)
        if not project.video_operation_name:
            return self._video_snapshot(project, VideoJobStatus.PENDING)

        try:
            status = await self.video_gen.check_status(project.video_operation_name)
        except Exception as e:
            logger.error("video_generation_poll_failed", project_id=str(project_id), error=str(e))
            raise GenerationError("Failed to check video generation status") from e

        if not status.done:
            return self._video_snapshot(project, VideoJobStatus.PROCESSING)

        operation_name = project.video_operation_name
        project.video_operation_name = None

        if status.error_message or not status.video_uris:
            message = status.error_message or "Generation completed but no video returned"
            project.status = ProjectStatus.DRAFT.value
            self.session.commit()
            logger.warning(
                "video_generation_failed",
                project_id=str(project_id),
                operation_name=operation_name,
                error=message,
            )
            snapshot = self._video_snapshot(project, VideoJobStatus.FAILED)
            snapshot.operation_name = operation_name
            snapshot.metadata["message"] = message
            return snapshot

        project.video_uri = status.video_uris[0]
        project.status = ProjectStatus.COMPLETED.value
        self.session.commit()
        self.session.refresh(project)

        logger.info(
            "video_generation_completed",
            project_id=str(project_id),
            operation_name=operation_name,
        )
        return self._video_snapshot(project, VideoJobStatus.COMPLETED)

    def _video_snapshot(
        self, project: ProjectModel, status: VideoJobStatus, cached: bool = False
    ) -> VideoJobSnapshot:
        return VideoJobSnapshot(
            status=status.value,
            provider=project.video_provider,
            operation_name=project.video_operation_name,
            video_uri=project.video_uri,
            cached=cached,
        )

    # =========================================================================
    # Ownership
    # =========================================================================

    def _find_owned(self, user_id: str, project_id: UUID | str) -> ProjectModel | None:
        try:
            project_uuid = project_id if isinstance(project_id, UUID) else UUID(str(project_id))
        except ValueError:
            return None
        return self.session.execute(
            select(ProjectModel).where(
                ProjectModel.id == project_uuid,
                ProjectModel.user_id == user_id,
            )
        ).scalar_one_or_none()

    def _owned_project(self, user_id: str, project_id: UUID) -> ProjectModel:
        """Projects of other users are reported exactly like missing ones."""
        project = self._find_owned(user_id, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project
