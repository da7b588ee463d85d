from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from jobboard.models.application_event import ApplicationEvent, ApplicationEventType


def log_application_event(
    db: Session,
    *,
    application_id: int,
    event_type: ApplicationEventType | str,
    actor_id: Optional[int],
    description: Optional[str] = None,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
    visible_to_candidate: bool = True,
    data: Optional[Dict[str, Any]] = None,
) -> ApplicationEvent:
    ev = ApplicationEvent(
        application_id=application_id,
        event_type=ApplicationEventType(event_type).value,
        old_status=old_status,
        new_status=new_status,
        description=(description or "")[:255] or None,
        data=data,
        triggered_by_id=actor_id,
        is_visible_to_job_seeker=visible_to_candidate,
    )
    db.add(ev)
    # Let caller decide commit timing; flush so `id`/`created_at` can be used.
    db.flush()
    return ev


def list_application_events(
    db: Session,
    application_id: int,
    *,
    visible_only: bool = False,
) -> list[ApplicationEvent]:
    qry = db.query(ApplicationEvent).filter(ApplicationEvent.application_id == application_id)
    if visible_only:
        qry = qry.filter(ApplicationEvent.is_visible_to_job_seeker.is_(True))
    return qry.order_by(ApplicationEvent.id.asc()).all()
