from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobboard.celery_app import celery_app
from jobboard.core.database import SessionLocal
from jobboard.services.subscriptions import SubscriptionGate


logger = logging.getLogger(__name__)


def _with_db_session() -> Session:
    return SessionLocal()


@celery_app.task(name="subscriptions.renew_due")
def renew_due_subscriptions() -> int:
    db = _with_db_session()
    try:
        renewed = SubscriptionGate(db).renew_due()
        logger.info("Renewal sweep finished: %s subscription(s) renewed", renewed)
        return renewed
    finally:
        db.close()
