"""Project endpoints: CRUD, scene generation, preview and video jobs."""

from typing import Literal

from fastapi import APIRouter, Query, Response, status

from scene_studio.api.deps import CurrentUserDep, LifecycleDep, parse_uuid
from scene_studio.api.schemas import (
    CreateProjectRequest,
    GeneratedSceneResponse,
    GenerateScenesRequest,
    GenerateScenesResponse,
    PreviewStatusResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummaryResponse,
    UpdateProjectRequest,
    VideoStatusResponse,
)
from scene_studio.db.models import ProjectModel
from scene_studio.logging import get_logger
from scene_studio.services.lifecycle import ProjectLifecycle

router = APIRouter(prefix="/projects", tags=["Projects"])
logger = get_logger(__name__)


def _project_response(lifecycle: ProjectLifecycle, project: ProjectModel) -> ProjectResponse:
    return ProjectResponse.from_project(
        project, lifecycle.list_scenes(project.id), lifecycle.project_stats(project)
    )


# =============================================================================
# CRUD
# =============================================================================


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
    description="Create a project, optionally generating its scenes from a script.",
)
async def create_project(
    request: CreateProjectRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> ProjectResponse:
    project = await lifecycle.create_project(
        user_id=user_id,
        title=request.title,
        topic=request.topic,
        description=request.description,
        script=request.script,
        style=request.style.value if request.style else None,
        generate_scenes=request.generate_scenes,
        scene_count=request.scene_count,
        scenes=request.scenes,
        refine=request.refine,
        provider=request.provider,
    )
    return _project_response(lifecycle, project)


@router.get(
    "",
    response_model=ProjectListResponse,
    summary="List projects",
)
async def list_projects(
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
    limit: int = Query(default=20, ge=1, le=50),
    cursor: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    sort: Literal["createdAt", "updatedAt", "title"] = Query(default="updatedAt"),
    order: Literal["asc", "desc"] = Query(default="desc"),
) -> ProjectListResponse:
    """List the caller's projects, newest activity first by default."""
    projects, next_cursor = lifecycle.list_projects(
        user_id,
        limit=limit,
        cursor=cursor,
        status=status_filter,
        sort=sort,
        order=order,
    )
    return ProjectListResponse(
        items=[
            ProjectSummaryResponse.from_model(project, lifecycle.project_stats(project))
            for project in projects
        ],
        next_cursor=next_cursor,
    )


@router.post(
    "/generate-scenes",
    response_model=GenerateScenesResponse,
    summary="Generate scenes from a script",
    description="Segment a script into scenes without an existing project, "
    "optionally saving them into a new project.",
)
async def generate_scenes(
    request: GenerateScenesRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> GenerateScenesResponse:
    result, project = await lifecycle.generate_scenes_standalone(
        user_id=user_id,
        script=request.script,
        topic=request.topic,
        scene_count=request.scene_count,
        style=request.style.value if request.style else None,
        refine=request.refine,
        provider=request.provider,
        create_project=request.create_project,
        title=request.title,
    )
    return GenerateScenesResponse(
        scenes=[GeneratedSceneResponse.from_generated(scene) for scene in result.scenes],
        script_used=result.script_used,
        refined_script=result.refined_script,
        project_id=str(project.id) if project else None,
    )


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get a project",
)
async def get_project(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> ProjectResponse:
    """Get a project with its ordered scenes."""
    project = lifecycle.get_project(user_id, parse_uuid(project_id, "project"))
    return _project_response(lifecycle, project)


@router.patch(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Update a project",
)
async def update_project(
    project_id: str,
    request: UpdateProjectRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> ProjectResponse:
    updates = request.model_dump(exclude_unset=True, mode="json")
    project = lifecycle.update_project(user_id, parse_uuid(project_id, "project"), updates)
    return _project_response(lifecycle, project)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
)
async def delete_project(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> Response:
    """Delete a project and all of its scenes."""
    lifecycle.delete_project(user_id, parse_uuid(project_id, "project"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Preview
# =============================================================================


@router.post(
    "/{project_id}/preview",
    response_model=PreviewStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Render a preview",
    description="Queue a local preview render of the project's scenes.",
)
def start_preview(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> PreviewStatusResponse:
    # Sync on purpose: with eager Celery the render runs inline and needs
    # a thread without a running event loop.
    snapshot = lifecycle.request_preview(user_id, parse_uuid(project_id, "project"))
    return PreviewStatusResponse.from_snapshot(snapshot)


@router.get(
    "/{project_id}/preview/status",
    response_model=PreviewStatusResponse,
    summary="Preview status",
)
async def preview_status(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> PreviewStatusResponse:
    snapshot = lifecycle.preview_status(user_id, parse_uuid(project_id, "project"))
    return PreviewStatusResponse.from_snapshot(snapshot)


# =============================================================================
# External video generation
# =============================================================================


@router.post(
    "/{project_id}/video",
    response_model=VideoStatusResponse,
    summary="Generate a video",
    description="Submit the project to the external video provider, "
    "or report the job already started.",
)
async def generate_video(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> VideoStatusResponse:
    snapshot = await lifecycle.generate_video(user_id, parse_uuid(project_id, "project"))
    return VideoStatusResponse.from_snapshot(snapshot)


@router.get(
    "/{project_id}/video/status",
    response_model=VideoStatusResponse,
    summary="Video generation status",
)
async def video_status(
    project_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> VideoStatusResponse:
    snapshot = await lifecycle.video_status(user_id, parse_uuid(project_id, "project"))
    return VideoStatusResponse.from_snapshot(snapshot)
