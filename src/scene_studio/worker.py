"""Celery application for preview rendering.

Run a worker on the render queue and the beat scheduler for the stale
preview sweep:

    celery -A scene_studio.worker worker -Q render,maintenance
    celery -A scene_studio.worker beat
"""

from celery import Celery

from scene_studio.config import settings
from scene_studio.logging import setup_logging

setup_logging()

celery_app = Celery(
    "scene_studio",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    # Redeliver renders from a lost worker
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    # Hard stop at the stale limit
    task_time_limit=settings.preview_stale_after_seconds,
    task_soft_time_limit=settings.preview_stale_after_seconds - 60,
    # FFmpeg saturates a core per render
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    result_expires=86400,
    task_routes={
        "preview.render_project": {"queue": "render"},
        "preview.expire_stale": {"queue": "maintenance"},
    },
    beat_schedule={
        "expire-stale-previews": {
            "task": "preview.expire_stale",
            "schedule": float(settings.preview_sweep_interval_seconds),
        },
    },
)

celery_app.autodiscover_tasks(["scene_studio.jobs"])
