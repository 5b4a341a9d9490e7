"""Celery application configuration."""

from datetime import timedelta

from celery import Celery

from core.config import config

# Create Celery app
celery_app = Celery(
    "waitlist_cascade",
    broker=config.REDIS_URL,
    backend=config.REDIS_URL,
    include=["app.tasks.waitlist_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,
)

# Auto-discover tasks from app.tasks module
celery_app.autodiscover_tasks(["app.tasks"])

# Configure periodic tasks (Celery Beat)
celery_app.conf.beat_schedule = {
    # Expire lapsed holds and offer freed slots to the next visitor in line
    "process-waitlist-cascade": {
        "task": "process_waitlist_cascade",
        "schedule": timedelta(minutes=config.WAITLIST_SCAN_INTERVAL_MINUTES),
    },
}


if __name__ == "__main__":
    celery_app.start()
