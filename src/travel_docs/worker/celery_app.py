from __future__ import annotations

from celery import Celery

from travel_docs.core.config import settings


def make_celery() -> Celery:
    app = Celery("travel_docs", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_always_eager=settings.environment == "dev",
        task_eager_propagates=True,
        task_track_started=True,
        # One record settles before the next starts; no fan-out inside a worker.
        worker_concurrency=1,
        worker_prefetch_multiplier=1,
    )
    app.autodiscover_tasks(["travel_docs.worker.tasks"])
    return app


celery_app = make_celery()
