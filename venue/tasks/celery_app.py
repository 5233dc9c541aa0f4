import os
from datetime import timedelta

from celery import Celery

from venue.core.config import settings

broker_url = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")

celery_app = Celery(
    "venue",
    broker=broker_url,
    backend=result_backend,
    include=["venue.tasks.expirations", "venue.tasks.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "queue-attendance-reminders": {
            "task": "reservations.queue_reminders",
            "schedule": timedelta(minutes=settings.celery_reminder_interval_minutes),
        },
        "auto-cancel-unconfirmed-reservations": {
            "task": "reservations.auto_cancel_unconfirmed",
            "schedule": timedelta(minutes=settings.celery_auto_cancel_interval_minutes),
        },
    },
)
