"""Celery application for background conversions."""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from mediahost.core.config import settings
from mediahost.core.logging import setup_logging

celery_app = Celery(
    "mediahost",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 3600,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # One FFmpeg run at a time per worker process
    worker_prefetch_multiplier=1,
    task_acks_late=False,
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Use the application's structured logging in workers."""
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)


celery_app.autodiscover_tasks(["mediahost.modules.conversion"])
