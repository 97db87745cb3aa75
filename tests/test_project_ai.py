"""Tests for AI scene generation, regeneration and refinement."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from scene_studio.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from scene_studio.domain.errors import GenerationError
from scene_studio.services.project_ai import (
    ProjectAiGateway,
    build_scene_context,
    build_scenes_prompt,
    build_video_prompt,
    clamp_scene_count,
    derive_topic_from_script,
    estimate_scene_count_from_script,
    extract_single_scene,
    normalize_scene,
    normalize_scenes,
    parse_model_json,
    stringify_script_payload,
    strip_code_fences,
)


class ScriptedLLM(LLMProvider):
    """Returns queued contents in order and remembers every request."""

    def __init__(self, *contents: str, usage: dict[str, int] | None = None) -> None:
        self.contents = list(contents)
        self.usage = usage if usage is not None else {
            "prompt_tokens": 10,
            "completion_tokens": 20,
            "total_tokens": 30,
        }
        self.requests: list[tuple[list[LLMMessage], float]] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.requests.append((messages, temperature))
        return LLMResponse(content=self.contents.pop(0), model="scripted-model", usage=self.usage)


class FailingLLM(LLMProvider):
    @property
    def name(self) -> str:
        return "failing"

    async def complete(self, messages, temperature=0.7, max_tokens=4096, json_mode=False):
        raise RuntimeError("upstream unavailable")


class SlowLLM(LLMProvider):
    @property
    def name(self) -> str:
        return "slow"

    async def complete(self, messages, temperature=0.7, max_tokens=4096, json_mode=False):
        await asyncio.sleep(5)
        raise AssertionError("should have timed out")


def _scenes_payload(count: int) -> str:
    return json.dumps(
        {
            "scenes": [
                {
                    "sceneNumber": i,
                    "description": f"Beat {i}",
                    "imagePrompt": f"Still {i}",
                    "bRollPrompt": f"Footage {i}",
                    "duration": 3,
                }
                for i in range(1, count + 1)
            ]
        }
    )


class TestResponseDecoding:
    """Tests for parsing model output."""

    def test_strip_code_fences(self):
        """Markdown fences around JSON are removed."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n[1]\n```') == "[1]"
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_parse_model_json_with_fences(self):
        assert parse_model_json('```JSON\n{"scenes": []}\n```') == {"scenes": []}

    def test_parse_model_json_empty(self):
        """Empty output is an error."""
        with pytest.raises(ValueError):
            parse_model_json("   ")

    def test_parse_model_json_invalid(self):
        with pytest.raises(ValueError):
            parse_model_json("not json at all")

    def test_single_scene_shapes(self):
        """A single scene is found in every accepted response shape."""
        scene = {"description": "x"}
        assert extract_single_scene({"scene": scene}) == scene
        assert extract_single_scene({"scenes": [scene, {"description": "y"}]}) == scene
        assert extract_single_scene([scene]) == scene
        assert extract_single_scene(scene) == scene


class TestNormalization:
    """Tests for scene normalization."""

    def test_missing_fields_default(self):
        """Missing text becomes empty and duration defaults to 5."""
        scene = normalize_scene({}, 3)

        assert scene.scene_number == 3
        assert scene.description == ""
        assert scene.image_prompt == ""
        assert scene.b_roll_prompt == ""
        assert scene.duration == 5.0

    def test_duration_is_clamped(self):
        """Durations are clamped to [1, 5]."""
        assert normalize_scene({"duration": 12}, 1).duration == 5.0
        assert normalize_scene({"duration": 0.2}, 1).duration == 1.0
        assert normalize_scene({"duration": "4"}, 1).duration == 4.0
        assert normalize_scene({"duration": "soon"}, 1).duration == 5.0

    def test_text_is_truncated(self):
        """Descriptions stop at 2000 characters and prompts at 1000."""
        scene = normalize_scene(
            {"description": "d" * 2500, "imagePrompt": "i" * 1500, "bRollPrompt": "b" * 1500},
            1,
        )

        assert len(scene.description) == 2000
        assert len(scene.image_prompt) == 1000
        assert len(scene.b_roll_prompt) == 1000

    def test_alternate_prompt_keys(self):
        """snake_case and lower-case prompt keys are accepted."""
        scene = normalize_scene({"image_prompt": "still", "brollPrompt": "roll"}, 1)

        assert scene.image_prompt == "still"
        assert scene.b_roll_prompt == "roll"

    def test_excess_scenes_are_dropped(self):
        """Only the requested number of scenes is kept, numbered in order."""
        scenes = normalize_scenes(json.loads(_scenes_payload(8)), 5)

        assert [scene.scene_number for scene in scenes] == [1, 2, 3, 4, 5]
        assert scenes[-1].description == "Beat 5"

    def test_no_scenes_is_an_error(self):
        with pytest.raises(ValueError):
            normalize_scenes({"scenes": []}, 3)

    def test_scenes_without_description_are_dropped(self):
        """Blank scenes are skipped and the remaining ones renumbered."""
        scenes = normalize_scenes({"scenes": [{"foo": 1}, {"description": "Dawn"}, {"description": "  "}]}, 3)

        assert [(scene.scene_number, scene.description) for scene in scenes] == [(1, "Dawn")]

    def test_only_blank_scenes_is_an_error(self):
        with pytest.raises(ValueError, match="No scenes returned"):
            normalize_scenes({"scenes": [{"foo": 1}, {}]}, 2)


class TestHelpers:
    """Tests for counts, topics and prompt helpers."""

    def test_clamp_scene_count(self):
        assert clamp_scene_count(None) == 4
        assert clamp_scene_count(0) == 1
        assert clamp_scene_count(50) == 20

    def test_estimate_scene_count_from_script(self):
        """One scene per 45 words, at least 1 and at most 20."""
        assert estimate_scene_count_from_script(None) == 4
        assert estimate_scene_count_from_script("word " * 10) == 1
        assert estimate_scene_count_from_script("word " * 91) == 3
        assert estimate_scene_count_from_script("word " * 5000) == 20

    def test_derive_topic_from_script(self):
        """Whitespace collapses and the topic stops at 120 characters."""
        assert derive_topic_from_script("  A  storm\n\nrolls in ") == "A storm rolls in"
        assert len(derive_topic_from_script("x" * 300)) == 120
        assert derive_topic_from_script("   ") is None

    def test_stringify_script_payload(self):
        """Structured scripts flatten into text."""
        assert stringify_script_payload(["Hook", "Payoff"]) == "1. Hook\n2. Payoff"
        assert stringify_script_payload({"hook": "Look up"}) == "hook: Look up"

    def test_scene_context_includes_neighbours_only(self):
        """Context covers the target scene and the scenes right before and after it."""
        scenes = [
            SimpleNamespace(scene_number=n, description=f"S{n}", image_prompt=None, b_roll_prompt=None)
            for n in range(1, 6)
        ]

        context = json.loads(build_scene_context(scenes, 3))

        assert [entry["sceneNumber"] for entry in context] == [2, 3, 4]

    def test_scenes_prompt_mentions_count_and_style(self):
        prompt = build_scenes_prompt("Tides", 6, "clay", "The sea rises.")

        assert "Create 6 short scenes" in prompt
        assert "clay" in prompt.lower()
        assert "The sea rises." in prompt

    def test_video_prompt_lists_scenes_in_order(self):
        scenes = [
            SimpleNamespace(scene_number=1, description="Dawn", image_prompt="sun", b_roll_prompt="", duration=3.0),
            SimpleNamespace(scene_number=2, description="Dusk", image_prompt="", b_roll_prompt="", duration=4.0),
        ]

        prompt = build_video_prompt("Days", "anime", scenes)

        assert prompt.index('VO="Dawn"') < prompt.index('VO="Dusk"')
        assert "duration=3s" in prompt


class TestGateway:
    """Tests for ProjectAiGateway."""

    @pytest.mark.asyncio
    async def test_generate_scenes_keeps_requested_count(self):
        """Asking for 5 scenes when the model returns 8 keeps exactly 5."""
        llm = ScriptedLLM(_scenes_payload(8))
        gateway = ProjectAiGateway(llm)

        result = await gateway.generate_scenes("Volcanoes", script="Lava.", scene_count=5)

        assert [scene.scene_number for scene in result.scenes] == [1, 2, 3, 4, 5]
        assert result.usage is not None
        assert result.usage.total_tokens == 30
        assert result.usage.model == "scripted-model"
        assert llm.requests[0][1] == 0.7

    @pytest.mark.asyncio
    async def test_generate_scenes_with_fenced_response(self):
        llm = ScriptedLLM("```json\n" + _scenes_payload(2) + "\n```")

        result = await ProjectAiGateway(llm).generate_scenes("Rivers", scene_count=2)

        assert len(result.scenes) == 2

    @pytest.mark.asyncio
    async def test_generate_scenes_without_usage(self):
        """Providers that report no usage yield no usage metrics."""
        llm = ScriptedLLM(_scenes_payload(1), usage={})

        result = await ProjectAiGateway(llm).generate_scenes("Rivers", scene_count=1)

        assert result.usage is None

    @pytest.mark.asyncio
    async def test_generate_scenes_unparseable(self):
        """Garbage output becomes a GenerationError."""
        gateway = ProjectAiGateway(ScriptedLLM("I cannot help with that"))

        with pytest.raises(GenerationError, match="Failed to generate scenes with AI"):
            await gateway.generate_scenes("Rivers", scene_count=2)

    @pytest.mark.asyncio
    async def test_generate_scenes_provider_failure(self):
        with pytest.raises(GenerationError):
            await ProjectAiGateway(FailingLLM()).generate_scenes("Rivers")

    @pytest.mark.asyncio
    async def test_generate_scenes_timeout(self):
        """A model call exceeding the timeout fails the generation."""
        gateway = ProjectAiGateway(SlowLLM(), timeout=0.05)

        with pytest.raises(GenerationError):
            await gateway.generate_scenes("Rivers")

    @pytest.mark.asyncio
    async def test_refine_then_generate(self):
        """Refinement runs first and its script feeds scene generation."""
        llm = ScriptedLLM(
            json.dumps({"script": "Hook. Twist. Payoff."}),
            _scenes_payload(3),
        )

        result = await ProjectAiGateway(llm).generate_scenes(
            "Comets", script="comets are cool", scene_count=3, refine=True
        )

        assert result.refined_script == "Hook. Twist. Payoff."
        assert result.script_used == "Hook. Twist. Payoff."
        assert result.refinement_usage is not None
        refine_messages, refine_temperature = llm.requests[0]
        assert refine_temperature == 0.65
        assert "Hook. Twist. Payoff." in llm.requests[1][0][1].content

    @pytest.mark.asyncio
    async def test_refined_script_is_truncated(self):
        llm = ScriptedLLM(json.dumps({"script": "x" * 6000}))

        refined, _ = await ProjectAiGateway(llm).refine_script("rough idea")

        assert len(refined) == 5000

    @pytest.mark.asyncio
    async def test_refine_failure(self):
        """A failed refinement aborts generation with its own message."""
        llm = ScriptedLLM(json.dumps({"script": ""}))

        with pytest.raises(GenerationError, match="Failed to refine script with AI"):
            await ProjectAiGateway(llm).generate_scenes("Comets", script="idea", refine=True)

    @pytest.mark.asyncio
    async def test_regenerate_scene_keeps_number(self):
        """The regenerated scene keeps the number it was asked for."""
        llm = ScriptedLLM(json.dumps({"scene": {"sceneNumber": 9, "description": "Fresh", "duration": 9}}))

        result = await ProjectAiGateway(llm).regenerate_scene(
            "Comets", 2, context="[]", instructions="Make it darker"
        )

        assert result.scene.scene_number == 2
        assert result.scene.description == "Fresh"
        assert result.scene.duration == 5.0
        prompt = llm.requests[0][0][1].content
        assert "Regenerate scene 2" in prompt
        assert "Make it darker" in prompt
        assert llm.requests[0][1] == 0.75

    @pytest.mark.asyncio
    async def test_regenerate_scene_failure(self):
        with pytest.raises(GenerationError, match="Failed to regenerate scene with AI"):
            await ProjectAiGateway(ScriptedLLM("")).regenerate_scene("Comets", 1)

    @pytest.mark.asyncio
    async def test_regenerate_scene_without_description(self):
        """A scene with no description is a failed regeneration."""
        llm = ScriptedLLM(json.dumps({"scene": {"duration": 3}}))

        with pytest.raises(GenerationError):
            await ProjectAiGateway(llm).regenerate_scene("Comets", 1)
