from __future__ import annotations

import logging

from celery import Celery

from jobboard.core.config import settings


logger = logging.getLogger(__name__)

BROKER_CONFIGURED = bool(settings.CELERY_BROKER_URL)

celery_app = Celery(
    "jobboard",
    include=[
        "jobboard.tasks.notifications",
        "jobboard.tasks.jobs",
        "jobboard.tasks.subscriptions",
    ],
)

if BROKER_CONFIGURED:
    broker_url = settings.CELERY_BROKER_URL
else:
    broker_url = "memory://"
    logger.warning("CELERY_BROKER_URL is not configured; notifications are delivered inline.")

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=None,
    task_default_queue="jobboard",
    task_serializer="json",
    accept_content=["json"],
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "sweep-expired-jobs": {
            "task": "jobs.sweep_expired",
            "schedule": float(settings.JOB_EXPIRY_SWEEP_SECONDS),
        },
        "reconcile-application-counts": {
            "task": "jobs.reconcile_application_counts",
            "schedule": float(settings.APPLICATION_COUNT_RECONCILE_SECONDS),
        },
        "renew-due-subscriptions": {
            "task": "subscriptions.renew_due",
            "schedule": float(settings.SUBSCRIPTION_RENEWAL_SWEEP_SECONDS),
        },
    },
)


def enqueue(task, *args, **kwargs):
    """
    Convenience helper so the API can enqueue tasks without caring
    whether the broker is configured. In tests/local dev we execute tasks inline.
    """
    if BROKER_CONFIGURED:
        return task.delay(*args, **kwargs)
    logger.info("Celery broker not configured; running %s synchronously", task.name)
    return task.apply(args=args, kwargs=kwargs)
