"""Scene generation through a language model.

The gateway turns a topic and optional script into an ordered list of
scenes, regenerates one scene with its neighbours as context, and rewrites
rough scripts into narration. Model output is decoded tolerantly (code
fences, several JSON shapes) and every scene is normalized into fixed bounds
before it leaves this module. A call either returns a complete result or
raises ``GenerationError``; nothing is persisted here.
"""

import asyncio
import json
import math
import re
from collections.abc import Sequence
from typing import Any

from scene_studio.adapters.llm.base import LLMProvider, LLMResponse
from scene_studio.config import settings
from scene_studio.domain.errors import GenerationError
from scene_studio.domain.models import (
    AiUsageMetrics,
    GeneratedScene,
    SceneGenerationResult,
    SceneRegenerationResult,
)
from scene_studio.logging import get_logger
from scene_studio.presets.styles import style_guidance

logger = get_logger(__name__)

# Field bounds for normalized scenes
MAX_DESCRIPTION_LENGTH = 2000
MAX_PROMPT_LENGTH = 1000
MAX_SCRIPT_LENGTH = 5000
MIN_SCENE_DURATION = 1.0
MAX_SCENE_DURATION = 5.0
DEFAULT_SCENE_DURATION = 5.0
MIN_SCENE_COUNT = 1
MAX_SCENE_COUNT = 20
DEFAULT_SCENE_COUNT = 4
WORDS_PER_SCENE = 45
TOPIC_FROM_SCRIPT_LENGTH = 120

GENERATE_TEMPERATURE = 0.7
REGENERATE_TEMPERATURE = 0.75
REFINE_TEMPERATURE = 0.65

SYSTEM_PROMPT = """You are an expert video content planner for short, faceless videos.
Break topics into clear, sequential scenes with vivid visual direction and matching b-roll ideas.
Ensure every imagePrompt and bRollPrompt stays consistent with the story's timeline, setting, and emotional arc.
When a topic or script implies a specific era or location (e.g., 1920s Paris), every visual should reflect that period and place.
Avoid referring to on-camera hosts; focus on what the viewer sees. Always answer with JSON only."""

SINGLE_SCENE_PROMPT = """You rewrite individual scenes for a faceless video, keeping them concise and visual-first.
Return a JSON object only."""

SCRIPT_REFINE_SYSTEM_PROMPT = """You are a viral short-form content strategist.
You reshape rough ideas into high-retention faceless scripts with strong hooks and pattern breaks.
Keep everything voiceover-ready; never mention a host or camera.
Always answer with JSON only."""

_ERA_LINE = (
    "If the topic or script hints at a historical period or place (e.g., 1920s Paris), "
    "explicitly anchor each imagePrompt and bRollPrompt in that era with era-accurate details "
    "(fashion, tech, lighting, vehicles, architecture)."
)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"```$")
_WHITESPACE_RE = re.compile(r"\s+")


# =============================================================================
# Response decoding
# =============================================================================


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = _FENCE_OPEN_RE.sub("", content.strip())
    return _FENCE_CLOSE_RE.sub("", cleaned).strip()


def parse_model_json(content: str) -> Any:
    """Parse model output as JSON after stripping code fences.

    Raises:
        ValueError: If the content is empty or not valid JSON
    """
    cleaned = strip_code_fences(content or "")
    if not cleaned:
        raise ValueError("Empty response from model")
    return json.loads(cleaned)


def extract_scene_list(data: Any) -> list[Any]:
    """Scenes from ``{"scenes": [...]}`` or a bare array."""
    if isinstance(data, dict) and isinstance(data.get("scenes"), list):
        return data["scenes"]
    if isinstance(data, list):
        return data
    return []


def extract_single_scene(data: Any) -> Any:
    """One scene from any accepted shape.

    Priority: ``{"scene": {...}}``, ``{"scenes": [first, ...]}``,
    ``[first, ...]``, then the object itself.
    """
    if isinstance(data, dict):
        if data.get("scene"):
            return data["scene"]
        if isinstance(data.get("scenes"), list) and data["scenes"]:
            return data["scenes"][0]
        return data
    if isinstance(data, list):
        return data[0] if data else None
    return data


# =============================================================================
# Normalization
# =============================================================================


def _bounded_text(raw: dict[str, Any], keys: Sequence[str], limit: int) -> str:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str):
            return value.strip()[:limit]
    return ""


def _coerce_duration(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_SCENE_DURATION
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SCENE_DURATION
    if not math.isfinite(number) or number == 0:
        return DEFAULT_SCENE_DURATION
    return number


def clamp_duration(value: float, upper: float = MAX_SCENE_DURATION) -> float:
    return min(upper, max(MIN_SCENE_DURATION, value))


def normalize_scene(raw: Any, scene_number: int) -> GeneratedScene:
    """Coerce one raw model scene into bounded fields.

    Missing or non-string text becomes "", durations default to 5 and are
    clamped to [1, 5]. The scene number is always the one given.
    """
    data = raw if isinstance(raw, dict) else {}
    return GeneratedScene(
        scene_number=scene_number,
        description=_bounded_text(data, ("description",), MAX_DESCRIPTION_LENGTH),
        image_prompt=_bounded_text(data, ("imagePrompt", "image_prompt"), MAX_PROMPT_LENGTH),
        b_roll_prompt=_bounded_text(data, ("bRollPrompt", "brollPrompt"), MAX_PROMPT_LENGTH),
        duration=clamp_duration(_coerce_duration(data.get("duration"))),
    )


def normalize_scenes(data: Any, target_count: int | None = None) -> list[GeneratedScene]:
    """Normalize a scene list, keeping at most ``target_count`` in model order.

    Scenes without a description are dropped and the rest renumbered 1..N.

    Raises:
        ValueError: If no scene with a description is present
    """
    described = [raw for raw in extract_scene_list(data) if normalize_scene(raw, 1).description]
    if not described:
        raise ValueError("No scenes returned")
    limit = target_count if target_count is not None else len(described)
    return [normalize_scene(raw, index) for index, raw in enumerate(described[:limit], start=1)]


def clamp_scene_count(value: int | None) -> int:
    if value is None:
        return DEFAULT_SCENE_COUNT
    return min(MAX_SCENE_COUNT, max(MIN_SCENE_COUNT, int(value)))


def estimate_scene_count_from_script(script: str | None, fallback: int = DEFAULT_SCENE_COUNT) -> int:
    """One scene per ~45 words of script, within [1, 20]."""
    if not script:
        return fallback
    words = len(script.split())
    return min(MAX_SCENE_COUNT, max(1, math.ceil(words / WORDS_PER_SCENE)))


def derive_topic_from_script(script: str | None) -> str | None:
    """First 120 characters of the whitespace-collapsed script."""
    if not script:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", script).strip()
    return cleaned[:TOPIC_FROM_SCRIPT_LENGTH] or None


def stringify_script_payload(value: Any) -> str:
    """Flatten whatever the model returned as a script into plain text."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(
            f"{index}. {stringify_script_payload(item)}" for index, item in enumerate(value, start=1)
        )
    if isinstance(value, dict):
        return "\n".join(f"{key}: {stringify_script_payload(val)}" for key, val in value.items())
    if value is None:
        return ""
    return str(value)


def build_scene_context(scenes: Sequence[Any], scene_number: int) -> str:
    """JSON context of the target scene and its immediate neighbours.

    ``scenes`` are objects with scene_number, description, image_prompt and
    b_roll_prompt attributes.
    """
    nearby = [
        {
            "sceneNumber": scene.scene_number,
            "description": scene.description,
            "imagePrompt": scene.image_prompt,
            "bRollPrompt": scene.b_roll_prompt,
        }
        for scene in sorted(scenes, key=lambda s: s.scene_number)
        if abs(scene.scene_number - scene_number) <= 1
    ]
    return json.dumps(nearby, ensure_ascii=False)


# =============================================================================
# Prompts
# =============================================================================


def build_scenes_prompt(topic: str, scene_count: int, style: str | None, script: str | None) -> str:
    parts = [
        f'Create {scene_count} short scenes for a faceless video. Topic reference: "{topic}".',
        "Use the provided script as the primary source and preserve its order and intent.",
        f"Visual style: {style_guidance(style)}.",
        "For each scene include: description (1-2 sentences), imagePrompt (cinematic still prompt), "
        "bRollPrompt (supporting footage), and duration in seconds.",
        "Each scene/b-roll should be between 1-5 seconds. Keep narration concise, action-oriented, "
        "and avoid direct address to camera.",
        "Keep visual prompts aligned with the full storyline (era, location, characters, tone) "
        "so shots feel consistent from start to finish.",
        _ERA_LINE,
    ]
    if script:
        parts.extend(["Script to split into scenes:", script])
    parts.append("Return a JSON object with a single key 'scenes' containing the array.")
    return "\n\n".join(parts)


def build_regenerate_prompt(
    topic: str,
    scene_number: int,
    style: str | None,
    context: str | None = None,
    instructions: str | None = None,
    script: str | None = None,
) -> str:
    parts = [
        f'Regenerate scene {scene_number} for a faceless video on "{topic}".',
        f"Visual style: {style_guidance(style)}.",
        "Provide fields: description, imagePrompt, bRollPrompt, duration (seconds).",
        "Make every visual cue consistent with any implied era/place in the topic/script/context "
        "(e.g., 1920s Paris = period clothing, vintage vehicles, muted film grain, era-accurate props).",
    ]
    if context:
        parts.extend(["Context from nearby scenes to keep continuity:", context])
    if script:
        parts.extend(["Use this user-provided script as source material:", script])
    if instructions:
        parts.extend(["Apply these specific instructions:", instructions])
    parts.append("Return a JSON object with a 'scene' field.")
    return "\n\n".join(parts)


def build_refinement_prompt(script: str, topic: str | None = None) -> str:
    lines = [
        "Refine the topic below into a high-retention faceless video script using this strict structure:",
        "1. Hook (0-2s, pattern break, curiosity-driven)",
        "2. One-line context (who / what / where)",
        "3. Escalation ladder (3-5 short beats, each increasing tension)",
        "4. Twist / reveal (the share-worthy moment)",
        "5. Payoff + clear lesson (emotional or practical)",
        "6. Loop ending (connects back to the hook so the video replays)",
        "Rules:",
        '* Faceless narration only (no "I", no on-screen speaker)',
        "* Short, punchy sentences",
        "* One dominant emotion throughout",
        "* No filler, no greetings",
        "* Spoken, cinematic language",
        "* 60-90 seconds total",
        "* End with a replay-worthy final line",
        "Output format:",
        "* Label each section clearly",
        "* After each section, add a short B-roll / visual cue in brackets",
        f"Topic to refine: {topic or 'Use the provided script as the idea'}",
        "Original script / idea:",
        script,
        'Return JSON: { "script": "refined narration ready to split into scenes" }.',
    ]
    return "\n\n".join(lines)


def build_video_prompt(topic: str, style: str | None, scenes: Sequence[Any]) -> str:
    """Prompt for an external text-to-video model from ordered scenes."""
    lines = [
        f'Generate a faceless short video (~8 seconds) for the topic "{topic}".',
        f"Visual style: {style_guidance(style)}.",
        "Use the provided ordered scenes as the voiceover lines; keep visuals tightly aligned "
        "to each line's era/location/tone.",
        "Return cinematic shots that can stitch together seamlessly; maintain setting "
        "consistency across all shots.",
        "Voiceover + visual plan:",
    ]
    for scene in scenes:
        duration = scene.duration or 2
        lines.append(
            f'Scene {scene.scene_number}: VO="{scene.description}" | '
            f'imagePrompt="{scene.image_prompt or ""}" | '
            f'bRollPrompt="{scene.b_roll_prompt or ""}" | duration={duration:g}s'
        )
    lines.append("Do not add a host. Keep narration as provided.")
    return "\n".join(lines)


# =============================================================================
# Gateway
# =============================================================================


class ProjectAiGateway:
    """Scene generation, regeneration and script refinement over an LLM.

    Usage metrics are returned with every result; recording them is up to
    the caller.
    """

    def __init__(self, llm: LLMProvider, timeout: float | None = None) -> None:
        self.llm = llm
        self.timeout = timeout or settings.llm_timeout_seconds

    async def generate_scenes(
        self,
        topic: str,
        script: str | None = None,
        style: str | None = None,
        scene_count: int | None = None,
        refine: bool = False,
    ) -> SceneGenerationResult:
        """Split a topic or script into normalized scenes.

        Args:
            topic: Topic reference for the video
            script: Optional script used as the primary source
            style: Project style key
            scene_count: Desired number of scenes, clamped to [1, 20]
            refine: Rewrite the script into narration before splitting

        Raises:
            GenerationError: If the model call fails or returns no usable scenes
        """
        target_count = clamp_scene_count(scene_count)

        refined_script: str | None = None
        refinement_usage: AiUsageMetrics | None = None
        if refine and script:
            refined_script, refinement_usage = await self.refine_script(script, topic=topic)
        script_for_scenes = refined_script or script

        logger.info(
            "scene_generation_started",
            topic=topic[:80],
            scene_count=target_count,
            style=style,
            has_script=bool(script_for_scenes),
            refined=refined_script is not None,
            llm_provider=self.llm.name,
        )

        try:
            data, usage = await self._complete_json(
                SYSTEM_PROMPT,
                build_scenes_prompt(topic, target_count, style, script_for_scenes),
                GENERATE_TEMPERATURE,
            )
            scenes = normalize_scenes(data, target_count)
        except Exception as e:
            logger.error("scene_generation_failed", error=str(e), llm_provider=self.llm.name)
            raise GenerationError("Failed to generate scenes with AI") from e

        logger.info("scene_generation_completed", scene_count=len(scenes))

        return SceneGenerationResult(
            scenes=scenes,
            script_used=script_for_scenes,
            refined_script=refined_script,
            usage=usage,
            refinement_usage=refinement_usage,
        )

    async def regenerate_scene(
        self,
        topic: str,
        scene_number: int,
        context: str | None = None,
        instructions: str | None = None,
        script: str | None = None,
        style: str | None = None,
    ) -> SceneRegenerationResult:
        """Rewrite one scene; the result keeps ``scene_number``.

        Raises:
            GenerationError: If the model call fails or returns nothing parseable
        """
        logger.info(
            "scene_regeneration_started",
            topic=topic[:80],
            scene_number=scene_number,
            has_context=bool(context),
            has_instructions=bool(instructions),
        )

        try:
            data, usage = await self._complete_json(
                SINGLE_SCENE_PROMPT,
                build_regenerate_prompt(topic, scene_number, style, context, instructions, script),
                REGENERATE_TEMPERATURE,
            )
            scene = normalize_scene(extract_single_scene(data), scene_number)
            if not scene.description:
                raise ValueError("Regenerated scene has no description")
        except Exception as e:
            logger.error("scene_regeneration_failed", error=str(e), scene_number=scene_number)
            raise GenerationError("Failed to regenerate scene with AI") from e

        return SceneRegenerationResult(scene=scene, usage=usage)

    async def refine_script(
        self, script: str, topic: str | None = None
    ) -> tuple[str, AiUsageMetrics | None]:
        """Rewrite a rough script into faceless narration.

        Returns:
            (refined script truncated to 5000 characters, usage)

        Raises:
            GenerationError: If the model fails or returns an empty script
        """
        try:
            data, usage = await self._complete_json(
                SCRIPT_REFINE_SYSTEM_PROMPT,
                build_refinement_prompt(script, topic),
                REFINE_TEMPERATURE,
            )
            raw_script = data["script"] if isinstance(data, dict) and "script" in data else data
            refined = stringify_script_payload(raw_script).strip()
            if not refined:
                raise ValueError("No refined script returned")
        except Exception as e:
            logger.error("script_refinement_failed", error=str(e))
            raise GenerationError("Failed to refine script with AI") from e

        logger.info("script_refined", original_length=len(script), refined_length=len(refined))
        return refined[:MAX_SCRIPT_LENGTH], usage

    async def _complete_json(
        self, system_prompt: str, user_prompt: str, temperature: float
    ) -> tuple[Any, AiUsageMetrics | None]:
        response: LLMResponse = await asyncio.wait_for(
            self.llm.complete_json(
                system_prompt,
                user_prompt,
                temperature=temperature,
                max_tokens=settings.llm_max_tokens,
            ),
            timeout=self.timeout,
        )
        data = parse_model_json(response.content)
        usage = AiUsageMetrics.from_usage(response.usage, response.model) if response.has_usage else None
        return data, usage
