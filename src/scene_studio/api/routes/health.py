"""Health check endpoints."""

import asyncio
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, status
from pydantic import BaseModel

from scene_studio.config import settings
from scene_studio.logging import get_logger
from scene_studio.services.providers import (
    get_llm_provider,
    get_video_gen_provider,
    get_voiceover_provider,
)
from scene_studio.services.storage import get_object_storage

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    components: dict[str, bool] | None = None


class ReadinessResponse(BaseModel):
    ready: bool
    database: bool
    redis: bool
    storage: bool
    components: dict[str, bool] | None = None


def _provider_checks() -> dict[str, Callable[[], Awaitable[bool]]]:
    return {
        "llm": lambda: get_llm_provider().health_check(),
        "voiceover": lambda: get_voiceover_provider().health_check(),
        "video_gen": lambda: get_video_gen_provider().health_check(),
    }


async def _check(name: str, probe: Callable[[], Awaitable[bool]]) -> bool:
    try:
        return await probe()
    except Exception as e:
        logger.error("component_health_check_failed", component=name, error=str(e))
        return False


def _database_ok() -> bool:
    from sqlalchemy import text

    from scene_studio.db.session import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
    return True


def _redis_ok() -> bool:
    """Broker reachability; previews cannot be queued without it."""
    import redis

    try:
        redis.from_url(settings.redis_url).ping()
    except Exception as e:
        logger.error("redis_health_check_failed", error=str(e))
        return False
    return True


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health_check() -> HealthResponse:
    """Process is up; components show which providers are not stubs."""
    from scene_studio import __version__

    configured = {
        "llm": settings.llm_provider,
        "voiceover": settings.voiceover_provider,
        "video_gen": settings.video_gen_provider,
    }

    return HealthResponse(
        status="healthy",
        version=__version__,
        components={name: provider != "stub" for name, provider in configured.items()},
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Database, broker, object storage and every configured provider.",
)
async def readiness_check() -> ReadinessResponse:
    database_ok = _database_ok()
    redis_ok = _redis_ok()

    checks = _provider_checks()
    results = await asyncio.gather(
        _check("storage", lambda: get_object_storage().health_check()),
        *(_check(name, probe) for name, probe in checks.items()),
    )
    storage_ok, provider_results = results[0], results[1:]
    components = dict(zip(checks, provider_results))

    return ReadinessResponse(
        ready=database_ok and redis_ok and storage_ok and all(components.values()),
        database=database_ok,
        redis=redis_ok,
        storage=storage_ok,
        components=components,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
