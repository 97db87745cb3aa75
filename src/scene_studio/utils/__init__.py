"""Utility modules."""

from scene_studio.utils.async_utils import run_async

__all__ = ["run_async"]
