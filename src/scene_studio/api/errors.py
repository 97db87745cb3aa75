"""Mapping of domain errors to HTTP responses.

Every domain error becomes ``{"detail": message}``, the same body shape
FastAPI uses for ``HTTPException``.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scene_studio.domain.errors import (
    GenerationError,
    NotFoundError,
    RateLimitedError,
    RenderError,
    SceneStudioError,
    ValidationError,
)
from scene_studio.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_ERROR: dict[type[SceneStudioError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    RateLimitedError: status.HTTP_429_TOO_MANY_REQUESTS,
    GenerationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RenderError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: SceneStudioError) -> int:
    for error_type in type(error).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a domain error with its mapped status."""
    assert isinstance(exc, SceneStudioError)
    status_code = status_for(exc)
    headers: dict[str, str] = {}

    if isinstance(exc, RateLimitedError) and exc.retry_after_seconds:
        headers["Retry-After"] = str(exc.retry_after_seconds)

    if status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    else:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=status_code,
            error=exc.message,
        )

    return JSONResponse(status_code=status_code, content={"detail": exc.message}, headers=headers)


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    """Malformed bodies and parameters are client errors like any other validation failure."""
    assert isinstance(exc, RequestValidationError)
    logger.info("request_invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SceneStudioError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
