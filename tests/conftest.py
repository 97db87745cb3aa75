"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

# Set test environment before importing app modules
_STORAGE_DIR = tempfile.mkdtemp(prefix="scene-studio-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LLM_PROVIDER"] = "stub"
os.environ["VOICEOVER_PROVIDER"] = "stub"
os.environ["VIDEO_GEN_PROVIDER"] = "stub"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_LOCAL_PATH"] = _STORAGE_DIR
os.environ["PREVIEW_SEGMENT_CACHE_DIR"] = ""

from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeFFmpegRunner:
    """Records FFmpeg invocations and writes the requested output file.

    ``fail_when`` is a predicate over the argument list; matching calls
    raise ``FFmpegError`` instead of producing output.
    """

    def __init__(self, fail_when: Any = None) -> None:
        self.calls: list[list[str]] = []
        self.fail_when = fail_when

    async def run(self, args: list[str]) -> None:
        from scene_studio.utils.ffmpeg import FFmpegError

        self.calls.append(list(args))
        if self.fail_when is not None and self.fail_when(args):
            raise FFmpegError("ffmpeg exited with code 1: simulated failure", returncode=1)
        Path(args[-1]).write_bytes(b"FAKE_MP4_" + str(len(self.calls)).encode())

    @property
    def concat_calls(self) -> list[list[str]]:
        return [call for call in self.calls if "concat" in call]


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite shared by every session of one test."""
    from scene_studio.db.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_context(session_factory: sessionmaker[Session]) -> Any:
    """Factory with the same commit/rollback contract as ``get_session_context``."""

    @contextmanager
    def _context() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _context


@pytest.fixture
def llm_provider():
    """Get a stub LLM provider."""
    from scene_studio.adapters.llm.stub import StubLLMProvider

    return StubLLMProvider()


@pytest.fixture
def voiceover_provider():
    """Get a stub voiceover provider."""
    from scene_studio.adapters.voiceover.stub import StubVoiceoverProvider

    return StubVoiceoverProvider()


@pytest.fixture
def video_gen_provider():
    """Get a stub video generation provider."""
    from scene_studio.adapters.video_gen.stub import StubVideoGenProvider

    return StubVideoGenProvider()


@pytest.fixture
def rate_limiter():
    from scene_studio.services.rate_limiter import InMemoryRateLimiter

    return InMemoryRateLimiter()


@pytest.fixture
def enqueued() -> list[Any]:
    """Project ids handed to the preview queue."""
    return []


@pytest.fixture
def lifecycle(
    db_session: Session,
    llm_provider: Any,
    rate_limiter: Any,
    voiceover_provider: Any,
    video_gen_provider: Any,
    enqueued: list[Any],
):
    from scene_studio.services.lifecycle import ProjectLifecycle

    def _enqueue(project_id: Any) -> str:
        enqueued.append(project_id)
        return f"task-{len(enqueued)}"

    return ProjectLifecycle(
        db_session,
        llm=llm_provider,
        rate_limiter=rate_limiter,
        voiceover=voiceover_provider,
        video_gen=video_gen_provider,
        enqueue_preview=_enqueue,
    )


@pytest.fixture
def fake_runner() -> FakeFFmpegRunner:
    return FakeFFmpegRunner()


@pytest.fixture
def local_storage(tmp_path: Path):
    from scene_studio.services.storage import LocalObjectStorage

    return LocalObjectStorage(base_path=tmp_path / "storage", public_base_url="http://media.test")


@pytest.fixture
def test_client(
    session_factory: sessionmaker[Session],
    llm_provider: Any,
    rate_limiter: Any,
    voiceover_provider: Any,
    video_gen_provider: Any,
    enqueued: list[Any],
) -> Generator[TestClient, None, None]:
    """Test client backed by the in-memory database and stub providers."""
    from scene_studio.api.deps import get_lifecycle
    from scene_studio.db.session import get_session
    from scene_studio.main import app
    from scene_studio.services.lifecycle import ProjectLifecycle

    def _session() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _enqueue(project_id: Any) -> str:
        enqueued.append(project_id)
        return f"task-{len(enqueued)}"

    def _lifecycle(session: Session = Depends(get_session)):
        return ProjectLifecycle(
            session,
            llm=llm_provider,
            rate_limiter=rate_limiter,
            voiceover=voiceover_provider,
            video_gen=video_gen_provider,
            enqueue_preview=_enqueue,
        )

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_lifecycle] = _lifecycle
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-User-Id": USER_ID}
