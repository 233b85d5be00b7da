"""Celery application for ticket intake workers.

Start a worker with:  celery -A app.workers.celery_app worker -Q ticket_intake
"""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from app.core.config import settings

INTAKE_QUEUE = "ticket_intake"

celery_app = Celery(
    "pdsdesk_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.workers.intake_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue=INTAKE_QUEUE,
    task_routes={"app.workers.intake_tasks.*": {"queue": INTAKE_QUEUE}},
    task_track_started=True,
    # A message is only acked once the ticket is committed; dedupe on
    # Message-ID makes redelivery harmless.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_soft_time_limit=60,
    task_time_limit=90,
    result_expires=24 * 3600,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Workers log with the API's format, request id column included."""
    from app.core.logging import setup_logging

    setup_logging()
