"""FastAPI application entry point."""

import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from scene_studio import __version__
from scene_studio.api.errors import register_error_handlers
from scene_studio.api.routes import health, projects, scenes
from scene_studio.config import settings
from scene_studio.logging import get_logger, log_context, setup_logging

setup_logging()
logger = get_logger(__name__)

# Probes hit these every few seconds
_UNLOGGED_PREFIXES = ("/health", "/media")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Check the database on startup without refusing to start."""
    logger.info("application_starting", version=__version__, storage=settings.storage_backend)

    try:
        from scene_studio.db.session import init_db

        init_db()
        logger.info("database_connected")
    except Exception as e:
        # Readiness reports the database until it comes up
        logger.error("database_connection_failed", error=str(e))

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="SceneStudio",
    description="Scene-ordered video projects with AI scene generation and preview rendering",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag log lines with the request and log one line per API call."""
    if request.url.path.startswith(_UNLOGGED_PREFIXES):
        return await call_next(request)

    with log_context(
        method=request.method,
        path=request.url.path,
        user_id=request.headers.get("x-user-id"),
    ):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
    return response


register_error_handlers(app)

app.include_router(health.router)
app.include_router(projects.router, prefix="/api/v1")
app.include_router(scenes.router, prefix="/api/v1")

# Local previews are served under the storage public base URL
if settings.storage_backend == "local":
    media_root = Path(settings.storage_local_path)
    media_root.mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=media_root), name="media")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {
        "name": "SceneStudio",
        "version": __version__,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scene_studio.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
