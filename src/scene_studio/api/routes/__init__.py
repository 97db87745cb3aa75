"""API route modules."""

from scene_studio.api.routes import health, projects, scenes

__all__ = ["health", "projects", "scenes"]
