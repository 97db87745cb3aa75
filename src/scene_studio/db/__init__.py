"""Database layer."""

from scene_studio.db.models import AiUsageModel, Base, ProjectModel, SceneModel
from scene_studio.db.session import get_session, get_session_context, init_db

__all__ = [
    "Base",
    "get_session",
    "get_session_context",
    "init_db",
    # Models
    "AiUsageModel",
    "ProjectModel",
    "SceneModel",
]
