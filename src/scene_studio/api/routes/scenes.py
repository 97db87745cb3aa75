"""Scene endpoints nested under a project."""

from fastapi import APIRouter, Response, status

from scene_studio.api.deps import CurrentUserDep, LifecycleDep, parse_uuid
from scene_studio.api.schemas import (
    CreateSceneRequest,
    RegenerateSceneRequest,
    ReorderScenesRequest,
    ReorderScenesResponse,
    SceneOrderEntry,
    SceneResponse,
    SynthesizeVoiceRequest,
    UpdateSceneRequest,
)
from scene_studio.domain.models import SceneDraft
from scene_studio.logging import get_logger

router = APIRouter(prefix="/projects/{project_id}/scenes", tags=["Scenes"])
logger = get_logger(__name__)

# Columns that may not be cleared with an explicit null
REQUIRED_SCENE_FIELDS = ("description", "duration")


@router.post(
    "",
    response_model=SceneResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a scene",
    description="Insert a scene at a position (later scenes shift up) or append it.",
)
async def create_scene(
    project_id: str,
    request: CreateSceneRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> SceneResponse:
    draft = SceneDraft(
        description=request.description,
        narration=request.narration,
        image_prompt=request.image_prompt,
        b_roll_prompt=request.b_roll_prompt,
        duration=request.duration,
        caption_text=request.caption_text,
        timing_plan=request.timing_plan,
        media_type=request.media_type,
        media_uri=request.media_uri,
        media_trim_start=request.media_trim_start,
        media_trim_end=request.media_trim_end,
        media_animation=request.media_animation,
        audio_uri=request.audio_uri,
    )
    scene = lifecycle.add_scene(
        user_id, parse_uuid(project_id, "project"), draft, position=request.position
    )
    return SceneResponse.from_model(scene)


@router.put(
    "/reorder",
    response_model=ReorderScenesResponse,
    summary="Reorder scenes",
    description="Apply a complete new order; the id list must match the project's scenes exactly.",
)
async def reorder_scenes(
    project_id: str,
    request: ReorderScenesRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> ReorderScenesResponse:
    order = lifecycle.reorder_scenes(user_id, parse_uuid(project_id, "project"), request.scene_ids)
    return ReorderScenesResponse(
        scenes=[
            SceneOrderEntry(id=str(scene_id), scene_number=number) for scene_id, number in order
        ]
    )


@router.patch(
    "/{scene_id}",
    response_model=SceneResponse,
    summary="Update a scene",
)
async def update_scene(
    project_id: str,
    scene_id: str,
    request: UpdateSceneRequest,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> SceneResponse:
    updates = request.model_dump(exclude_unset=True)
    for field_name in REQUIRED_SCENE_FIELDS:
        if field_name in updates and updates[field_name] is None:
            del updates[field_name]

    scene = lifecycle.update_scene(
        user_id,
        parse_uuid(project_id, "project"),
        parse_uuid(scene_id, "scene"),
        updates,
    )
    return SceneResponse.from_model(scene)


@router.delete(
    "/{scene_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a scene",
)
async def delete_scene(
    project_id: str,
    scene_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
) -> Response:
    """Delete a scene; later scenes move down to close the gap."""
    lifecycle.delete_scene(
        user_id, parse_uuid(project_id, "project"), parse_uuid(scene_id, "scene")
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{scene_id}/regenerate",
    response_model=SceneResponse,
    summary="Regenerate a scene",
    description="Rewrite one scene with the model, keeping its position.",
)
async def regenerate_scene(
    project_id: str,
    scene_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
    request: RegenerateSceneRequest | None = None,
) -> SceneResponse:
    request = request or RegenerateSceneRequest()
    scene = await lifecycle.regenerate_scene(
        user_id,
        parse_uuid(project_id, "project"),
        parse_uuid(scene_id, "scene"),
        context=request.context,
        instructions=request.instructions,
        script=request.script,
        topic=request.topic,
        provider=request.provider,
    )
    return SceneResponse.from_model(scene)


@router.post(
    "/{scene_id}/voice",
    response_model=SceneResponse,
    summary="Synthesize narration",
    description="Speak the scene narration and attach the audio to the scene.",
)
async def synthesize_voice(
    project_id: str,
    scene_id: str,
    user_id: CurrentUserDep,
    lifecycle: LifecycleDep,
    request: SynthesizeVoiceRequest | None = None,
) -> SceneResponse:
    request = request or SynthesizeVoiceRequest()
    scene = await lifecycle.synthesize_scene_voice(
        user_id,
        parse_uuid(project_id, "project"),
        parse_uuid(scene_id, "scene"),
        voice=request.voice,
        text=request.text,
    )
    return SceneResponse.from_model(scene)
