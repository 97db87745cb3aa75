"""AI usage ledger."""

from typing import Any

from sqlalchemy.orm import Session

from scene_studio.db.models import AiUsageModel
from scene_studio.domain.models import AiUsageMetrics
from scene_studio.logging import get_logger

logger = get_logger(__name__)

# Usage actions
ACTION_CREATE_GENERATE_SCENES = "project:create:generate-scenes"
ACTION_CREATE_REFINE_SCRIPT = "project:create:refine-script"
ACTION_GENERATE_SCENES = "project:generate-scenes"
ACTION_GENERATE_REFINE_SCRIPT = "project:generate-scenes:refine-script"
ACTION_REGENERATE_SCENE = "project:scene:regenerate"


class UsageRecorder:
    """Append-only writer for ``ai_usage`` rows.

    Recording is best-effort: a failed write is logged and swallowed so
    accounting never fails the request that produced the usage. The row is
    written in a savepoint, leaving the caller's transaction intact.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def record(
        self,
        user_id: str,
        action: str,
        usage: AiUsageMetrics | None,
        metadata: dict[str, Any] | None = None,
    ) -> AiUsageModel | None:
        """Write one usage entry; does nothing when ``usage`` is None."""
        if usage is None:
            return None

        entry = AiUsageModel(
            user_id=user_id,
            action=action,
            ai_model=usage.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            metadata_=metadata or {},
        )

        try:
            with self.session.begin_nested():
                self.session.add(entry)
        except Exception as e:
            logger.error("ai_usage_record_failed", action=action, user_id=user_id, error=str(e))
            return None

        logger.info(
            "ai_usage_recorded",
            action=action,
            user_id=user_id,
            model=usage.model,
            total_tokens=usage.total_tokens,
        )
        return entry
