"""Ordered scene storage for projects.

Scene numbers within a project are always the contiguous sequence 1..N once
a transaction commits. ``project_scenes`` carries a unique constraint on
``(project_id, scene_number)``, so any renumbering first moves the affected
rows into a staging range above every live number and only then settles them
onto their final numbers. No intermediate write can collide with another row.

Every structural mutation (insert, delete, reorder) starts by locking the
parent project row, which serializes concurrent writers on the same project
across processes. The caller owns the transaction: nothing is committed here.
"""

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from scene_studio.db.models import ProjectModel, SceneModel
from scene_studio.domain.errors import NotFoundError, ValidationError
from scene_studio.domain.models import SceneDraft, SceneStats
from scene_studio.logging import get_logger

logger = get_logger(__name__)

# Lower bound for the staging range used while renumbering
SCENE_STAGING_OFFSET = 1000


class SceneStore:
    """Insert, delete, reorder and recount the scenes of a project."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_scenes(self, project_id: UUID) -> list[SceneModel]:
        """All scenes of a project ordered by scene number."""
        result = self.session.execute(
            select(SceneModel)
            .where(SceneModel.project_id == project_id)
            .order_by(SceneModel.scene_number)
        )
        return list(result.scalars().all())

    def get_scene(self, project_id: UUID, scene_id: UUID) -> SceneModel:
        """Fetch one scene, scoped to its project."""
        scene = self.session.execute(
            select(SceneModel).where(
                SceneModel.id == scene_id,
                SceneModel.project_id == project_id,
            )
        ).scalar_one_or_none()
        if scene is None:
            raise NotFoundError("Scene not found")
        return scene

    def count(self, project_id: UUID) -> int:
        return self.session.execute(
            select(func.count(SceneModel.id)).where(SceneModel.project_id == project_id)
        ).scalar_one()

    # -------------------------------------------------------------------------
    # Structural mutations
    # -------------------------------------------------------------------------

    def insert(
        self,
        project_id: UUID,
        draft: SceneDraft,
        position: int | None = None,
    ) -> SceneModel:
        """Insert a scene, shifting later scenes up by one.

        Args:
            project_id: Owning project
            draft: Scene content
            position: 1-based target position; appended when omitted, clamped
                to [1, count + 1] otherwise

        Returns:
            The created scene
        """
        self._lock_project(project_id)

        existing = self.list_scenes(project_id)
        count = len(existing)
        target = count + 1 if position is None else min(max(position, 1), count + 1)

        if target <= count:
            self._stage_and_settle(
                project_id,
                [(scene.id, scene.scene_number + 1) for scene in existing[target - 1 :]],
            )

        scene = _scene_from_draft(project_id, draft, target)
        self.session.add(scene)
        self.session.flush()
        self.recount(project_id)

        logger.info(
            "scene_inserted",
            project_id=str(project_id),
            scene_id=str(scene.id),
            scene_number=target,
            scenes_count=count + 1,
        )
        return scene

    def insert_many(self, project_id: UUID, drafts: Iterable[SceneDraft]) -> list[SceneModel]:
        """Append a batch of scenes in ascending draft scene-number order.

        Drafts without a number keep their position in the input. Numbers are
        reassigned to continue the project's existing sequence.
        """
        self._lock_project(project_id)

        indexed = list(enumerate(drafts))
        indexed.sort(key=lambda item: (item[1].scene_number or item[0] + 1, item[0]))

        start = self.count(project_id)
        created = []
        for offset, (_, draft) in enumerate(indexed, start=1):
            scene = _scene_from_draft(project_id, draft, start + offset)
            self.session.add(scene)
            created.append(scene)

        self.session.flush()
        self.recount(project_id)

        logger.info("scenes_inserted", project_id=str(project_id), count=len(created))
        return created

    def delete(self, project_id: UUID, scene_id: UUID) -> None:
        """Delete a scene and close the gap it leaves."""
        self._lock_project(project_id)

        scene = self.get_scene(project_id, scene_id)
        deleted_number = scene.scene_number

        self.session.delete(scene)
        self.session.flush()

        following = self.session.execute(
            select(SceneModel)
            .where(
                SceneModel.project_id == project_id,
                SceneModel.scene_number > deleted_number,
            )
            .order_by(SceneModel.scene_number)
        ).scalars()
        self._stage_and_settle(
            project_id,
            [(other.id, other.scene_number - 1) for other in following],
        )
        self.recount(project_id)

        logger.info(
            "scene_deleted",
            project_id=str(project_id),
            scene_id=str(scene_id),
            scene_number=deleted_number,
        )

    def reorder(self, project_id: UUID, scene_ids: Sequence[str]) -> list[tuple[UUID, int]]:
        """Apply a full permutation of the project's scenes.

        Args:
            project_id: Owning project
            scene_ids: Every scene id of the project, in the desired order

        Returns:
            (scene id, new scene number) pairs in order

        Raises:
            NotFoundError: If the project does not exist
            ValidationError: If the ids are not exactly the project's scenes
        """
        self._lock_project(project_id)

        existing_ids = {scene.id for scene in self.list_scenes(project_id)}
        if not scene_ids and not existing_ids:
            return []
        if len(scene_ids) != len(existing_ids):
            raise ValidationError("sceneIds count mismatch")

        ordered = [_parse_uuid(value) for value in scene_ids]
        if len(set(ordered)) != len(existing_ids) or any(
            scene_id not in existing_ids for scene_id in ordered
        ):
            raise ValidationError("sceneIds must include all scenes exactly once")

        plan = [(scene_id, index) for index, scene_id in enumerate(ordered, start=1)]
        self._stage_and_settle(project_id, plan)

        logger.info("scenes_reordered", project_id=str(project_id), count=len(plan))
        return [(scene_id, number) for scene_id, number in plan]

    def recount(self, project_id: UUID) -> SceneStats:
        """Recompute and persist the project's cached scene aggregates."""
        scenes_count, total_duration = self.session.execute(
            select(
                func.count(SceneModel.id),
                func.coalesce(func.sum(SceneModel.duration), 0.0),
            ).where(SceneModel.project_id == project_id)
        ).one()

        stats = SceneStats(scenes_count=scenes_count, total_duration=float(total_duration))
        self.session.execute(
            update(ProjectModel)
            .where(ProjectModel.id == project_id)
            .values(scenes_count=stats.scenes_count, total_duration=stats.total_duration)
        )
        return stats

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lock_project(self, project_id: UUID) -> None:
        """Take the per-project write lock (row lock on the parent project)."""
        locked = self.session.execute(
            select(ProjectModel.id).where(ProjectModel.id == project_id).with_for_update()
        ).scalar_one_or_none()
        if locked is None:
            raise NotFoundError("Project not found")

    def _staging_offset(self, project_id: UUID) -> int:
        highest = self.session.execute(
            select(func.max(SceneModel.scene_number)).where(SceneModel.project_id == project_id)
        ).scalar_one()
        return max(SCENE_STAGING_OFFSET, (highest or 0) + 1)

    def _stage_and_settle(self, project_id: UUID, plan: list[tuple[UUID, int]]) -> None:
        """Move scenes to new numbers without ever sharing a number.

        Phase one parks every planned scene at ``offset + final`` (above any
        live number); phase two writes the final numbers. Targets must not
        clash with scenes outside the plan.
        """
        if not plan:
            return

        offset = self._staging_offset(project_id)
        for scene_id, final in plan:
            self._set_number(project_id, scene_id, offset + final)
        for scene_id, final in plan:
            self._set_number(project_id, scene_id, final)
        self.session.flush()

    def _set_number(self, project_id: UUID, scene_id: UUID, scene_number: int) -> None:
        self.session.execute(
            update(SceneModel)
            .where(SceneModel.project_id == project_id, SceneModel.id == scene_id)
            .values(scene_number=scene_number)
        )


def _scene_from_draft(project_id: UUID, draft: SceneDraft, scene_number: int) -> SceneModel:
    return SceneModel(
        project_id=project_id,
        scene_number=scene_number,
        description=draft.description,
        narration=draft.narration or draft.description,
        caption_text=draft.caption_text,
        timing_plan=draft.timing_plan,
        image_prompt=draft.image_prompt,
        b_roll_prompt=draft.b_roll_prompt,
        duration=draft.duration,
        media_type=draft.media_type,
        media_uri=draft.media_uri,
        media_trim_start=draft.media_trim_start,
        media_trim_end=draft.media_trim_end,
        media_animation=draft.media_animation,
        audio_uri=draft.audio_uri,
    )


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None
