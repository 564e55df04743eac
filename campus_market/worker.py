"""Celery worker configuration.

Background work for the marketplace:
- Notification dispatch after booking changes
- Daily booking reminders
"""

from celery import Celery
from celery.schedules import crontab

from campus_market.config import settings

# Create Celery app
celery_app = Celery(
    "campus_market_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["campus_market.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.celery_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,
    task_soft_time_limit=90,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        "send-booking-reminders": {
            "task": "campus_market.tasks.send_booking_reminders",
            "schedule": crontab(hour=settings.booking_reminder_hour, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
