"""Tests for project lifecycle orchestration."""

import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from scene_studio.adapters.llm.base import LLMResponse
from scene_studio.adapters.llm.stub import StubLLMProvider
from scene_studio.adapters.video_gen.base import VideoGenStatus
from scene_studio.adapters.video_gen.stub import StubVideoGenProvider
from scene_studio.adapters.voiceover.base import VoiceoverResult
from scene_studio.adapters.voiceover.stub import StubVoiceoverProvider
from scene_studio.db.models import AiUsageModel, ProjectModel, SceneModel
from scene_studio.domain.errors import (
    GenerationError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from scene_studio.domain.models import SceneDraft
from scene_studio.services.lifecycle import ProjectLifecycle, normalize_input_scenes
from scene_studio.services.rate_limiter import InMemoryRateLimiter
from scene_studio.services.usage import (
    ACTION_CREATE_GENERATE_SCENES,
    ACTION_CREATE_REFINE_SCRIPT,
    ACTION_GENERATE_SCENES,
    ACTION_REGENERATE_SCENE,
)

from conftest import OTHER_USER_ID, USER_ID

SCRIPT = " ".join(["The tide pulls back and the old pier appears."] * 12)


class CountingLLM(StubLLMProvider):
    """Stub provider that remembers every prompt."""

    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def complete(self, messages, temperature=0.7, max_tokens=4096, json_mode=False):
        self.prompts.append(messages[-1].content)
        return await super().complete(messages, temperature, max_tokens, json_mode)


class BrokenLLM(StubLLMProvider):
    async def complete(self, messages, temperature=0.7, max_tokens=4096, json_mode=False):
        raise RuntimeError("model offline")


class BlankSceneLLM(StubLLMProvider):
    """Answers every prompt with scenes that carry no description."""

    async def complete(self, messages, temperature=0.7, max_tokens=4096, json_mode=False):
        return LLMResponse(
            content=json.dumps({"scene": {}, "scenes": [{"foo": 1}, {}]}),
            model="blank",
            usage={"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        )


class SilentVoiceover(StubVoiceoverProvider):
    async def generate(self, request):
        return VoiceoverResult(success=False, error_message="quota exceeded")


class PendingThenFailedVideo(StubVideoGenProvider):
    def __init__(self) -> None:
        self.polls = 0

    async def check_status(self, operation_name):
        self.polls += 1
        if self.polls == 1:
            return VideoGenStatus(done=False)
        return VideoGenStatus(done=True, error_message="Content blocked")


def _usage_actions(session: Session) -> list[str]:
    return [row.action for row in session.execute(select(AiUsageModel)).scalars()]


async def _project_with_scenes(lifecycle: ProjectLifecycle, count: int = 3, user_id: str = USER_ID):
    return await lifecycle.create_project(
        user_id=user_id,
        title="Tides",
        topic="Tides",
        scenes=[{"description": f"Scene {i}", "duration": 2} for i in range(1, count + 1)],
    )


class TestNormalizeInputScenes:
    def test_normalization_rules(self):
        """Empty descriptions are skipped, text trimmed and durations clamped to [1, 6]."""
        drafts = normalize_input_scenes(
            [
                {"description": "  First  ", "duration": 10},
                {"description": "   "},
                {"description": "Second", "duration": 0},
                {"description": "Third", "duration": "x", "imagePrompt": " still "},
                "not a scene",
            ]
        )

        assert [draft.description for draft in drafts] == ["First", "Second", "Third"]
        assert [draft.duration for draft in drafts] == [6.0, 1.0, 5.0]
        assert drafts[2].image_prompt == "still"
        assert [draft.scene_number for draft in drafts] == [1, 3, 4]

    def test_at_most_fifty_scenes(self):
        drafts = normalize_input_scenes([{"description": f"S{i}"} for i in range(80)])

        assert len(drafts) == 50

    def test_explicit_scene_numbers_are_kept(self):
        drafts = normalize_input_scenes(
            [{"description": "B", "sceneNumber": 2}, {"description": "A", "sceneNumber": 1}]
        )

        assert [draft.scene_number for draft in drafts] == [2, 1]


class TestCreateProject:
    """Tests for project creation."""

    @pytest.mark.asyncio
    async def test_create_with_provided_scenes(self, lifecycle: ProjectLifecycle, db_session: Session):
        """Provided scenes are stored in order and the project stays a draft."""
        project = await lifecycle.create_project(
            user_id=USER_ID,
            title="Piers",
            script=SCRIPT,
            scenes=[
                {"description": "Second", "sceneNumber": 2, "duration": 3},
                {"description": "First", "sceneNumber": 1, "duration": 4},
            ],
        )

        scenes = lifecycle.list_scenes(project.id)
        assert [(s.scene_number, s.description) for s in scenes] == [(1, "First"), (2, "Second")]
        assert project.status == "draft"
        assert project.topic == SCRIPT[:120]
        assert project.style == "cinematic"
        assert project.scenes_count == 2
        assert project.total_duration == pytest.approx(7.0)
        assert _usage_actions(db_session) == []

    @pytest.mark.asyncio
    async def test_topic_from_first_scene(self, lifecycle: ProjectLifecycle):
        project = await lifecycle.create_project(
            user_id=USER_ID, title="No topic", scenes=[{"description": "A lighthouse at night"}]
        )

        assert project.topic == "A lighthouse at night"

    @pytest.mark.asyncio
    async def test_topic_is_required(self, lifecycle: ProjectLifecycle, db_session: Session):
        """Without topic, script or scenes nothing is created."""
        with pytest.raises(ValidationError, match="Topic, script, or scene descriptions are required"):
            await lifecycle.create_project(user_id=USER_ID, title="Empty")

        assert db_session.execute(select(ProjectModel)).first() is None

    @pytest.mark.asyncio
    async def test_generation_requires_script(self, lifecycle: ProjectLifecycle):
        with pytest.raises(ValidationError, match="Script is required to generate scenes"):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", topic="Tides", generate_scenes=True
            )

    @pytest.mark.asyncio
    async def test_scene_count_out_of_range(self, lifecycle: ProjectLifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", script=SCRIPT, generate_scenes=True, scene_count=21
            )

    @pytest.mark.asyncio
    async def test_create_with_generated_scenes(self, lifecycle: ProjectLifecycle, db_session: Session):
        """Generated scenes are stored 1..N and the usage is recorded."""
        project = await lifecycle.create_project(
            user_id=USER_ID,
            title="Tides",
            script=SCRIPT,
            generate_scenes=True,
            scene_count=4,
            style="ghibli",
        )

        scenes = lifecycle.list_scenes(project.id)
        assert [scene.scene_number for scene in scenes] == [1, 2, 3, 4]
        assert project.status == "in-progress"
        assert project.style == "ghibli"
        assert project.refined_script == SCRIPT
        assert _usage_actions(db_session) == [ACTION_CREATE_GENERATE_SCENES]

    @pytest.mark.asyncio
    async def test_scene_count_estimated_from_script(self, lifecycle: ProjectLifecycle):
        """About one scene per 45 words when no count is given."""
        project = await lifecycle.create_project(
            user_id=USER_ID, title="Tides", script=SCRIPT, generate_scenes=True
        )

        # 108 words
        assert project.scenes_count == 3

    @pytest.mark.asyncio
    async def test_refined_generation_records_both_usages(
        self, lifecycle: ProjectLifecycle, db_session: Session
    ):
        project = await lifecycle.create_project(
            user_id=USER_ID,
            title="Tides",
            script=SCRIPT,
            generate_scenes=True,
            scene_count=2,
            refine=True,
        )

        assert project.refined_script.startswith("Refined narration:")
        assert sorted(_usage_actions(db_session)) == sorted(
            [ACTION_CREATE_GENERATE_SCENES, ACTION_CREATE_REFINE_SCRIPT]
        )

    @pytest.mark.asyncio
    async def test_provided_scenes_win_over_generated(self, lifecycle: ProjectLifecycle):
        project = await lifecycle.create_project(
            user_id=USER_ID,
            title="Tides",
            script=SCRIPT,
            generate_scenes=True,
            scene_count=5,
            scenes=[{"description": "Mine"}],
        )

        assert [scene.description for scene in lifecycle.list_scenes(project.id)] == ["Mine"]

    @pytest.mark.asyncio
    async def test_failed_generation_writes_nothing(self, db_session: Session):
        """A model failure leaves no project, scenes or usage behind."""
        lifecycle = ProjectLifecycle(db_session, llm=BrokenLLM(), rate_limiter=InMemoryRateLimiter())

        with pytest.raises(GenerationError):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", script=SCRIPT, generate_scenes=True
            )

        assert db_session.execute(select(ProjectModel)).first() is None
        assert db_session.execute(select(SceneModel)).first() is None
        assert _usage_actions(db_session) == []

    @pytest.mark.asyncio
    async def test_blank_generated_scenes_are_rejected(self, db_session: Session):
        """Scenes without descriptions never reach the database."""
        lifecycle = ProjectLifecycle(db_session, llm=BlankSceneLLM(), rate_limiter=InMemoryRateLimiter())

        with pytest.raises(GenerationError):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", script=SCRIPT, generate_scenes=True, scene_count=2
            )

        assert db_session.execute(select(SceneModel)).first() is None

    @pytest.mark.asyncio
    async def test_eleventh_generation_is_rate_limited(self, db_session: Session):
        """The 11th generation in an hour is rejected before the model is called."""
        llm = CountingLLM()
        lifecycle = ProjectLifecycle(db_session, llm=llm, rate_limiter=InMemoryRateLimiter())

        for _ in range(10):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", script=SCRIPT, generate_scenes=True, scene_count=1
            )

        with pytest.raises(RateLimitedError):
            await lifecycle.create_project(
                user_id=USER_ID, title="T", script=SCRIPT, generate_scenes=True, scene_count=1
            )

        assert len(llm.prompts) == 10
        assert len(_usage_actions(db_session)) == 10
        assert len(db_session.execute(select(ProjectModel)).all()) == 10


class TestListProjects:
    """Tests for project listing."""

    @pytest.mark.asyncio
    async def test_cursor_pagination(self, lifecycle: ProjectLifecycle):
        """Pages follow each other without gaps or repeats."""
        for title in ["E", "B", "D", "A", "C"]:
            await lifecycle.create_project(user_id=USER_ID, title=title, topic=title)
        await lifecycle.create_project(user_id=OTHER_USER_ID, title="Z", topic="Z")

        seen: list[str] = []
        cursor = None
        pages = 0
        while True:
            items, cursor = lifecycle.list_projects(
                USER_ID, limit=2, cursor=cursor, sort="title", order="asc"
            )
            seen.extend(project.title for project in items)
            pages += 1
            if cursor is None:
                break

        assert seen == ["A", "B", "C", "D", "E"]
        assert pages == 3

    @pytest.mark.asyncio
    async def test_descending_and_status_filter(self, lifecycle: ProjectLifecycle):
        for title in ["A", "B", "C"]:
            await lifecycle.create_project(user_id=USER_ID, title=title, topic=title)
        await lifecycle.create_project(
            user_id=USER_ID, title="G", script=SCRIPT, generate_scenes=True, scene_count=1
        )

        items, _ = lifecycle.list_projects(USER_ID, sort="title", order="desc", status="draft")

        assert [project.title for project in items] == ["C", "B", "A"]

    def test_invalid_cursor(self, lifecycle: ProjectLifecycle):
        with pytest.raises(ValidationError, match="Invalid cursor"):
            lifecycle.list_projects(USER_ID, cursor=str(uuid4()))


class TestProjectOwnership:
    """Projects of other users behave as if they did not exist."""

    @pytest.mark.asyncio
    async def test_foreign_project_is_not_found(self, lifecycle: ProjectLifecycle):
        project = await _project_with_scenes(lifecycle, user_id=OTHER_USER_ID)

        with pytest.raises(NotFoundError):
            lifecycle.get_project(USER_ID, project.id)
        with pytest.raises(NotFoundError):
            lifecycle.delete_project(USER_ID, project.id)

    @pytest.mark.asyncio
    async def test_update_and_delete(self, lifecycle: ProjectLifecycle, db_session: Session):
        project = await _project_with_scenes(lifecycle)

        updated = lifecycle.update_project(
            USER_ID, project.id, {"title": "Renamed", "status": "completed"}
        )
        assert updated.title == "Renamed"
        assert updated.status == "completed"

        lifecycle.delete_project(USER_ID, project.id)

        assert db_session.execute(select(SceneModel)).first() is None


class TestSceneOperations:
    """Tests for scene editing through the lifecycle."""

    @pytest.mark.asyncio
    async def test_add_update_delete_and_reorder(self, lifecycle: ProjectLifecycle):
        project = await _project_with_scenes(lifecycle, 3)

        added = lifecycle.add_scene(USER_ID, project.id, SceneDraft(description="Inserted"), position=2)
        assert added.scene_number == 2

        updated = lifecycle.update_scene(USER_ID, project.id, added.id, {"duration": 6.0})
        assert updated.duration == 6.0
        assert lifecycle.get_project(USER_ID, project.id).total_duration == pytest.approx(12.0)

        lifecycle.delete_scene(USER_ID, project.id, added.id)
        ids = [str(scene.id) for scene in lifecycle.list_scenes(project.id)]
        order = lifecycle.reorder_scenes(USER_ID, project.id, list(reversed(ids)))

        assert [number for _, number in order] == [1, 2, 3]
        assert [s.description for s in lifecycle.list_scenes(project.id)] == [
            "Scene 3",
            "Scene 2",
            "Scene 1",
        ]

    @pytest.mark.asyncio
    async def test_regenerate_scene(self, db_session: Session):
        """Regeneration rewrites the scene in place using its neighbours as context."""
        llm = CountingLLM()
        lifecycle = ProjectLifecycle(db_session, llm=llm, rate_limiter=InMemoryRateLimiter())
        project = await _project_with_scenes(lifecycle, 4)
        target = lifecycle.list_scenes(project.id)[1]

        scene = await lifecycle.regenerate_scene(USER_ID, project.id, target.id, instructions="Calmer")

        assert scene.id == target.id
        assert scene.scene_number == 2
        assert scene.description.startswith("Scene 2:")
        prompt = llm.prompts[-1]
        assert '"Scene 1"' in prompt and '"Scene 3"' in prompt
        assert '"Scene 4"' not in prompt
        assert "Calmer" in prompt
        assert _usage_actions(db_session) == [ACTION_REGENERATE_SCENE]

    @pytest.mark.asyncio
    @pytest.mark.asyncio
    async def test_regenerate_without_description_keeps_scene(self, db_session: Session):
        """A blank regeneration fails and leaves the stored scene untouched."""
        seeding = ProjectLifecycle(db_session, rate_limiter=InMemoryRateLimiter())
        project = await _project_with_scenes(seeding, 2)
        target = seeding.list_scenes(project.id)[0]
        lifecycle = ProjectLifecycle(db_session, llm=BlankSceneLLM(), rate_limiter=InMemoryRateLimiter())

        with pytest.raises(GenerationError):
            await lifecycle.regenerate_scene(USER_ID, project.id, target.id)

        db_session.refresh(target)
        assert target.description == "Scene 1"

    @pytest.mark.asyncio
    async def test_regenerate_unknown_scene(self, lifecycle: ProjectLifecycle):
        project = await _project_with_scenes(lifecycle, 1)

        with pytest.raises(NotFoundError):
            await lifecycle.regenerate_scene(USER_ID, project.id, uuid4())

    @pytest.mark.asyncio
    async def test_synthesize_voice(self, lifecycle: ProjectLifecycle):
        """Narration audio is stored on the scene as a data URI."""
        project = await _project_with_scenes(lifecycle, 1)
        scene = lifecycle.list_scenes(project.id)[0]

        updated = await lifecycle.synthesize_scene_voice(USER_ID, project.id, scene.id, voice="mysterious")

        assert updated.audio_uri.startswith("data:audio/mpeg;base64,")

    @pytest.mark.asyncio
    async def test_synthesize_voice_failure(self, db_session: Session):
        lifecycle = ProjectLifecycle(
            db_session, llm=StubLLMProvider(), rate_limiter=InMemoryRateLimiter(), voiceover=SilentVoiceover()
        )
        project = await _project_with_scenes(lifecycle, 1)
        scene = lifecycle.list_scenes(project.id)[0]

        with pytest.raises(GenerationError):
            await lifecycle.synthesize_scene_voice(USER_ID, project.id, scene.id)


class TestStandaloneGeneration:
    @pytest.mark.asyncio
    async def test_requires_script(self, lifecycle: ProjectLifecycle):
        with pytest.raises(ValidationError, match="Script is required"):
            await lifecycle.generate_scenes_standalone(USER_ID, script="")

    @pytest.mark.asyncio
    async def test_generate_without_project(self, lifecycle: ProjectLifecycle, db_session: Session):
        result, project = await lifecycle.generate_scenes_standalone(USER_ID, script=SCRIPT, scene_count=3)

        assert project is None
        assert len(result.scenes) == 3
        assert db_session.execute(select(ProjectModel)).first() is None
        assert _usage_actions(db_session) == [ACTION_GENERATE_SCENES]

    @pytest.mark.asyncio
    async def test_generate_into_new_project(self, lifecycle: ProjectLifecycle):
        result, project = await lifecycle.generate_scenes_standalone(
            USER_ID, script=SCRIPT, scene_count=2, create_project=True, title="Saved"
        )

        assert project is not None
        assert project.title == "Saved"
        assert [s.scene_number for s in lifecycle.list_scenes(project.id)] == [1, 2]


class TestPreviewRequests:
    """Tests for queueing previews."""

    @pytest.mark.asyncio
    async def test_request_enqueues_and_stores_task(self, lifecycle: ProjectLifecycle, enqueued: list):
        project = await _project_with_scenes(lifecycle, 1)

        snapshot = lifecycle.request_preview(USER_ID, project.id)

        assert enqueued == [project.id]
        assert snapshot.task_id == "task-1"
        assert snapshot.status == "pending"

    @pytest.mark.asyncio
    async def test_running_preview_is_not_duplicated(
        self, lifecycle: ProjectLifecycle, db_session: Session, enqueued: list
    ):
        project = await _project_with_scenes(lifecycle, 1)
        project.preview_status = "processing"
        project.preview_started_at = datetime.now(timezone.utc)
        db_session.commit()

        snapshot = lifecycle.request_preview(USER_ID, project.id)

        assert enqueued == []
        assert snapshot.status == "processing"

    @pytest.mark.asyncio
    async def test_stale_preview_is_restarted(
        self, lifecycle: ProjectLifecycle, db_session: Session, enqueued: list
    ):
        project = await _project_with_scenes(lifecycle, 1)
        project.preview_status = "processing"
        project.preview_started_at = datetime.now(timezone.utc) - timedelta(hours=2)
        db_session.commit()

        lifecycle.request_preview(USER_ID, project.id)

        assert enqueued == [project.id]

    @pytest.mark.asyncio
    async def test_status_polling_is_idempotent(self, lifecycle: ProjectLifecycle):
        project = await _project_with_scenes(lifecycle, 1)

        first = lifecycle.preview_status(USER_ID, project.id)
        second = lifecycle.preview_status(USER_ID, project.id)

        assert first == second
        assert first.status == "pending"
        assert first.progress == 0


class TestVideoGeneration:
    """Tests for external video generation."""

    @pytest.mark.asyncio
    async def test_requires_scenes(self, lifecycle: ProjectLifecycle):
        project = await lifecycle.create_project(user_id=USER_ID, title="T", topic="Empty")

        with pytest.raises(ValidationError, match="Scenes are required to generate a video"):
            await lifecycle.generate_video(USER_ID, project.id)

    @pytest.mark.asyncio
    async def test_submit_poll_and_cache(self, lifecycle: ProjectLifecycle):
        """Submit once, report processing while outstanding, then serve the stored video."""
        project = await _project_with_scenes(lifecycle, 2)

        started = await lifecycle.generate_video(USER_ID, project.id)
        assert started.status == "processing"
        assert started.operation_name.startswith("operations/stub-")
        assert lifecycle.get_project(USER_ID, project.id).status == "in-progress"

        again = await lifecycle.generate_video(USER_ID, project.id)
        assert again.status == "processing"
        assert again.operation_name == started.operation_name

        done = await lifecycle.video_status(USER_ID, project.id)
        assert done.status == "completed"
        assert done.video_uri.endswith(".mp4")
        assert done.operation_name is None
        assert lifecycle.get_project(USER_ID, project.id).status == "completed"

        cached = await lifecycle.generate_video(USER_ID, project.id)
        assert cached.status == "completed"
        assert cached.cached is True
        assert cached.video_uri == done.video_uri

    @pytest.mark.asyncio
    async def test_status_without_job(self, lifecycle: ProjectLifecycle):
        project = await _project_with_scenes(lifecycle, 1)

        snapshot = await lifecycle.video_status(USER_ID, project.id)

        assert snapshot.status == "pending"

    @pytest.mark.asyncio
    async def test_failed_operation_is_cleared(self, db_session: Session):
        """A failed job clears the operation and returns the project to draft."""
        video = PendingThenFailedVideo()
        lifecycle = ProjectLifecycle(
            db_session, llm=StubLLMProvider(), rate_limiter=InMemoryRateLimiter(), video_gen=video
        )
        project = await _project_with_scenes(lifecycle, 1)
        await lifecycle.generate_video(USER_ID, project.id)

        pending = await lifecycle.video_status(USER_ID, project.id)
        in_progress = lifecycle.get_project(USER_ID, project.id).status
        failed = await lifecycle.video_status(USER_ID, project.id)

        assert pending.status == "processing"
        assert failed.status == "failed"
        assert failed.metadata["message"] == "Content blocked"
        assert lifecycle.get_project(USER_ID, project.id).video_operation_name is None
        assert lifecycle.get_project(USER_ID, project.id).status == "draft"
        assert in_progress == "in-progress"
