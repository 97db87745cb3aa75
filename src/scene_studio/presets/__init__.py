"""Visual style presets for scene generation."""

from scene_studio.presets.styles import (
    DEFAULT_STYLE,
    PRESETS,
    StylePreset,
    get_preset,
    get_preset_names,
    style_guidance,
)

__all__ = [
    "DEFAULT_STYLE",
    "PRESETS",
    "StylePreset",
    "get_preset",
    "get_preset_names",
    "style_guidance",
]
