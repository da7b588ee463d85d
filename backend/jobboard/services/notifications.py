from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobboard.core.config import settings
from jobboard.core.errors import DomainError, NotFoundError
from jobboard.models.application import ApplicationStatus
from jobboard.models.notification import Notification, NotificationType
from jobboard.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class NotificationMessage:
    """One logical notification fanned out to one or more recipients."""

    recipient_ids: list[int]
    type: NotificationType
    title: str
    message: str
    related_entity_type: str | None = None
    related_entity_id: int | None = None
    priority: int = 1
    context: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = NotificationType(self.type).value
        return data

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NotificationMessage":
        data = dict(payload)
        data["type"] = NotificationType(data["type"])
        data["recipient_ids"] = [int(x) for x in data.get("recipient_ids") or []]
        return cls(**data)


class NotificationDispatcher:
    """
    Creates in-app notifications.

    `notify`/`notify_many` are ordinary operations that raise. `dispatch` is
    the best-effort entry point for lifecycle side-effects: it runs after the
    primary write has been committed and never raises.
    """

    MAX_PAGE_SIZE = 200

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: int,
        type: NotificationType | str,
        title: str,
        message: str,
        *,
        related_entity_type: str | None = None,
        related_entity_id: int | None = None,
        priority: int = 1,
    ) -> Notification:
        if not self.db.get(User, user_id):
            raise NotFoundError("User not found")

        row = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title[:255],
            message=message,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            priority=int(priority or 1),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def notify_many(
        self,
        user_ids: Iterable[int],
        type: NotificationType | str,
        title: str,
        message: str,
        *,
        related_entity_type: str | None = None,
        related_entity_id: int | None = None,
        priority: int = 1,
    ) -> list[Notification]:
        seen: set[int] = set()
        out: list[Notification] = []
        for uid in user_ids:
            if uid is None or uid in seen:
                continue
            seen.add(uid)
            try:
                with self.db.begin_nested():
                    out.append(
                        self.notify(
                            uid,
                            type,
                            title,
                            message,
                            related_entity_type=related_entity_type,
                            related_entity_id=related_entity_id,
                            priority=priority,
                        )
                    )
            except (DomainError, SQLAlchemyError):
                logger.warning("Skipping notification %s for user %s", type, uid, exc_info=True)
        return out

    def deliver(self, msg: NotificationMessage) -> list[Notification]:
        rows = self.notify_many(
            msg.recipient_ids,
            msg.type,
            msg.title,
            msg.message,
            related_entity_type=msg.related_entity_type,
            related_entity_id=msg.related_entity_id,
            priority=msg.priority,
        )
        self.db.commit()
        return rows

    def dispatch(self, msg: NotificationMessage | Callable[[], NotificationMessage]) -> None:
        """
        Fire-and-forget. Must only be called once the triggering change is
        committed; failures are logged here and never reach the caller.

        `msg` may be a zero-argument builder. It is called inside the same
        guard, so recipient lookups and lazy loads cannot fail the caller.
        """
        if not settings.NOTIFICATIONS_ENABLED:
            return
        try:
            if callable(msg):
                msg = msg()
            if not msg.recipient_ids:
                return

            # Imported lazily: the task module imports this one.
            from jobboard.celery_app import BROKER_CONFIGURED, enqueue
            from jobboard.tasks.notifications import deliver_notification

            if BROKER_CONFIGURED:
                enqueue(deliver_notification, msg.to_payload())
                return
            self.deliver(msg)
        except Exception:  # pylint: disable=broad-except
            if isinstance(msg, NotificationMessage):
                logger.exception(
                    "Notification dispatch failed: type=%s recipients=%s entity=%s:%s",
                    NotificationType(msg.type).value,
                    msg.recipient_ids,
                    msg.related_entity_type,
                    msg.related_entity_id,
                )
            else:
                logger.exception("Notification could not be built")
            self.db.rollback()

    # --- inbox ---

    def list_for_user(self, user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        normalized_limit = max(1, min(int(limit or 50), self.MAX_PAGE_SIZE))
        qry = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            qry = qry.filter(Notification.is_read.is_(False))
        return qry.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(normalized_limit).all()

    def unread_count(self, user_id: int) -> int:
        count = (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )
        return int(count or 0)

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        row = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not row:
            raise NotFoundError("Notification not found")
        if not row.is_read:
            row.is_read = True
            row.read_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(row)
        return row


# ----------------------------------------------------------------------
# Message builders
# ----------------------------------------------------------------------

def application_received(
    recipient_ids: list[int], *, job_title: str, applicant_name: str, application_id: int
) -> NotificationMessage:
    return NotificationMessage(
        recipient_ids=recipient_ids,
        type=NotificationType.APPLICATION_RECEIVED,
        title="New Application Received",
        message=f"{applicant_name} has applied for your job: {job_title}",
        related_entity_type="application",
        related_entity_id=application_id,
        priority=3,
    )


_STATUS_PHRASES = {
    ApplicationStatus.REVIEWING.value: "is being reviewed",
    ApplicationStatus.SHORTLISTED.value: "has been shortlisted",
}


def application_status_changed(
    candidate_user_id: int,
    *,
    status: str,
    job_title: str,
    company_name: str,
    application_id: int,
) -> NotificationMessage:
    if status == ApplicationStatus.ACCEPTED.value:
        return NotificationMessage(
            recipient_ids=[candidate_user_id],
            type=NotificationType.APPLICATION_APPROVED,
            title="Application Approved",
            message=f'Congratulations! Your application for "{job_title}" at {company_name} has been approved.',
            related_entity_type="application",
            related_entity_id=application_id,
            priority=3,
        )
    if status == ApplicationStatus.REJECTED.value:
        return NotificationMessage(
            recipient_ids=[candidate_user_id],
            type=NotificationType.APPLICATION_REJECTED,
            title="Application Status Update",
            message=(
                f'Your application for "{job_title}" at {company_name} has been reviewed '
                "but not selected at this time."
            ),
            related_entity_type="application",
            related_entity_id=application_id,
            priority=2,
        )
    phrase = _STATUS_PHRASES.get(status, f"moved to {status}")
    return NotificationMessage(
        recipient_ids=[candidate_user_id],
        type=NotificationType.APPLICATION_STATUS_CHANGED,
        title="Application Status Updated",
        message=f'Your application for "{job_title}" {phrase}.',
        related_entity_type="application",
        related_entity_id=application_id,
        priority=2,
    )


def interview_scheduled(
    candidate_user_id: int,
    *,
    job_title: str,
    company_name: str,
    when: datetime,
    application_id: int,
) -> NotificationMessage:
    return NotificationMessage(
        recipient_ids=[candidate_user_id],
        type=NotificationType.APPLICATION_INTERVIEW_SCHEDULED,
        title="Interview Scheduled",
        message=(
            f'Great news! {company_name} has scheduled an interview for "{job_title}" '
            f"on {when.strftime('%Y-%m-%d %H:%M UTC')}."
        ),
        related_entity_type="application",
        related_entity_id=application_id,
        priority=4,
        context={"scheduled_at": when.isoformat()},
    )


def application_withdrawn(
    recipient_ids: list[int], *, job_title: str, applicant_name: str, application_id: int
) -> NotificationMessage:
    return NotificationMessage(
        recipient_ids=recipient_ids,
        type=NotificationType.APPLICATION_WITHDRAWN,
        title="Application Withdrawn",
        message=f"{applicant_name} withdrew their application for {job_title}",
        related_entity_type="application",
        related_entity_id=application_id,
        priority=1,
    )


def cv_viewed(candidate_user_id: int, *, company_name: str, application_id: int) -> NotificationMessage:
    return NotificationMessage(
        recipient_ids=[candidate_user_id],
        type=NotificationType.CV_VIEWED,
        title="CV Viewed",
        message=f"{company_name} has viewed your CV",
        related_entity_type="application",
        related_entity_id=application_id,
        priority=1,
    )


def job_expired(owner_id: int, *, job_title: str, job_id: int) -> NotificationMessage:
    return NotificationMessage(
        recipient_ids=[owner_id],
        type=NotificationType.JOB_EXPIRED,
        title="Job Expired",
        message=f'Your job "{job_title}" has expired and is no longer active',
        related_entity_type="job",
        related_entity_id=job_id,
        priority=2,
    )
