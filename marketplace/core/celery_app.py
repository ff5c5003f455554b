"""
Celery application: broker and result backend from settings.
Tasks live in marketplace.payouts.tasks and marketplace.fulfillment.tasks.
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import after_setup_logger

from marketplace.core.config import settings
from marketplace.core.logging import configure_logging

celery_app = Celery(
    "marketplace",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "marketplace.payouts.tasks",
        "marketplace.fulfillment.tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=3600,
    result_expires=86400,
    beat_schedule={
        "compute-creator-payouts": {
            "task": "marketplace.payouts.tasks.compute_payouts",
            "schedule": crontab(minute=f"*/{settings.payout_schedule_minutes}")
            if settings.payout_schedule_minutes < 60
            else crontab(minute=0),
        },
    },
)

celery_app.conf.task_routes = {
    "marketplace.fulfillment.tasks.submit_print_jobs_for_order": {"queue": "fulfillment"},
}


@after_setup_logger.connect
def _json_worker_logging(logger, *args, **kwargs):
    configure_logging(logger)
