"""Style preset definitions for scene generation.

Each preset carries the visual-guidance sentence that is injected into
scene generation, regeneration and video prompts so every shot of a project
shares one look.
"""

from dataclasses import dataclass

from scene_studio.domain.enums import ProjectStyle


@dataclass(frozen=True)
class StylePreset:
    """A visual style preset.

    Attributes:
        name: Style identifier as stored on the project
        display_name: Human-readable name
        guidance: Visual direction embedded in model prompts
    """

    name: ProjectStyle
    display_name: str
    guidance: str


# =============================================================================
# PRESET DEFINITIONS
# =============================================================================

PRESETS: dict[str, StylePreset] = {
    preset.name.value: preset
    for preset in (
        StylePreset(
            ProjectStyle.REALISTIC_4K,
            "4K Realistic",
            "4K ultra-realistic visuals with crisp detail and lifelike textures",
        ),
        StylePreset(
            ProjectStyle.CLAY,
            "Clay",
            "stop-motion clay characters and props, soft lighting, handcrafted feel",
        ),
        StylePreset(
            ProjectStyle.CINEMATIC,
            "Cinematic",
            "cinematic lighting, shallow depth of field, dramatic framing",
        ),
        StylePreset(
            ProjectStyle.BRICK,
            "Brick",
            "built from LEGO/brick-style pieces, colorful studs and blocky forms",
        ),
        StylePreset(
            ProjectStyle.GRUDGE,
            "Grudge",
            "gritty, moody, high contrast with subtle film grain",
        ),
        StylePreset(
            ProjectStyle.COMIC_BOOK,
            "Comic Book",
            "inked outlines, halftone shading, bold colors and dynamic angles",
        ),
        StylePreset(
            ProjectStyle.MUPPET,
            "Muppet",
            "felt textures, puppet-style characters with expressive eyes",
        ),
        StylePreset(
            ProjectStyle.GHIBLI,
            "Ghibli",
            "Studio Ghibli-inspired, painterly backgrounds and gentle lighting",
        ),
        StylePreset(
            ProjectStyle.PLAYGROUND,
            "Playground",
            "whimsical, toy-like, soft gradients and playful geometry",
        ),
        StylePreset(
            ProjectStyle.VOXEL,
            "Voxel",
            "3D voxel art, blocky depth, isometric-friendly lighting",
        ),
        StylePreset(
            ProjectStyle.ANIME,
            "Anime",
            "anime-style characters, clean lines, vivid color, energetic compositions",
        ),
        StylePreset(
            ProjectStyle.PIXER_3D,
            "Pixar 3D",
            "Pixar-like 3D, soft global illumination, expressive characters",
        ),
    )
}

DEFAULT_STYLE = ProjectStyle.CINEMATIC


def get_preset(name: str | None) -> StylePreset | None:
    """Get a preset by name (case-insensitive).

    Args:
        name: Style name, e.g. "comic-book"

    Returns:
        StylePreset if found, None otherwise
    """
    if not name:
        return None
    return PRESETS.get(name.lower())


def get_preset_names() -> list[str]:
    """Get list of available style names."""
    return list(PRESETS.keys())


def style_guidance(name: str | None) -> str:
    """Visual guidance for a style, falling back to the default style."""
    preset = get_preset(name) or PRESETS[DEFAULT_STYLE]
    return preset.guidance
