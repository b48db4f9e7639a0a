"""
Celery application configuration for background tasks.
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from ..config import get_settings
from ..utils.logging_config import setup_logging

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "class_booking",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "class_booking.tasks.booking_tasks",
        "class_booking.tasks.notification_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Replace Celery's logging setup with the package's dictConfig."""
    setup_logging()
