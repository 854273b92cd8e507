from celery import Celery

from siteflow.config import settings

celery_app = Celery(
    "siteflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    # One scan at a time per worker process: each owns a ZAP container and a browser
    worker_prefetch_multiplier=1,
    task_routes={
        "siteflow.workers.scan_worker.*": {"queue": "scan"},
    },
)

# Explicitly include tasks
celery_app.conf.include = [
    "siteflow.workers.scan_worker",
]
