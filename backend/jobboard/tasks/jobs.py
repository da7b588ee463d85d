from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobboard.celery_app import celery_app
from jobboard.core.database import SessionLocal
from jobboard.services.jobs import JobPublishingManager


logger = logging.getLogger(__name__)


def _with_db_session() -> Session:
    return SessionLocal()


@celery_app.task(name="jobs.sweep_expired")
def sweep_expired_jobs() -> int:
    db = _with_db_session()
    try:
        count = JobPublishingManager(db).sweep_expired()
        logger.info("Expiry sweep finished: %s job(s) expired", count)
        return count
    finally:
        db.close()


@celery_app.task(name="jobs.reconcile_application_counts")
def reconcile_application_counts() -> int:
    db = _with_db_session()
    try:
        fixed = JobPublishingManager(db).reconcile_all()
        if fixed:
            logger.warning("Reconciled application_count on %s job(s)", fixed)
        return fixed
    finally:
        db.close()
