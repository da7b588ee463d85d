from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobboard.celery_app import celery_app
from jobboard.core.database import SessionLocal
from jobboard.services.notifications import NotificationDispatcher, NotificationMessage


logger = logging.getLogger(__name__)


def _with_db_session() -> Session:
    return SessionLocal()


@celery_app.task(name="notifications.deliver")
def deliver_notification(payload: dict) -> int:
    """
    Worker side of NotificationDispatcher.dispatch. No retries: a dropped
    notification is logged and lost.
    """
    db = _with_db_session()
    try:
        msg = NotificationMessage.from_payload(payload)
        rows = NotificationDispatcher(db).deliver(msg)
        return len(rows)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Failed to deliver notification payload: %s", payload)
        db.rollback()
        return 0
    finally:
        db.close()
