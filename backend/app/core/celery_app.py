from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "campaign_assistant",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.tasks.research_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "expire-stale-sections": {
            "task": "expire_stale_sections",
            "schedule": float(settings.STALE_SWEEP_INTERVAL_SECONDS),
        },
    },
)
