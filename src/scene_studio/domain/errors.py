"""Domain error taxonomy.

Each error maps to one HTTP status at the API boundary (see
``scene_studio.api.errors``). ``RenderError`` never reaches a caller: the
preview pipeline records it as ``failed`` state instead.
"""


class SceneStudioError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SceneStudioError):
    """Malformed or inconsistent input. No mutation was performed."""


class NotFoundError(SceneStudioError):
    """Unknown id, or an id the caller does not own."""


class RateLimitedError(SceneStudioError):
    """The caller exceeded a sliding-window limit."""

    def __init__(self, message: str, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class GenerationError(SceneStudioError):
    """A model call failed or returned nothing usable."""


class RenderError(SceneStudioError):
    """A preview render step failed."""
