"""Celery application: worker and beat for background reconciliation"""

from celery import Celery
from app.config import settings

celery_app = Celery(
    "hostel_orders",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.jobs.tasks"],
)

SWEEP_INTERVAL = float(settings.pending_recheck_interval_seconds)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,

    beat_schedule={
        "sweep-pending-commits": {
            "task": "sweep_pending_commits",
            "schedule": SWEEP_INTERVAL,
            # A sweep still queued when the next one is due is dropped
            "options": {"expires": SWEEP_INTERVAL},
        },
    },
)
