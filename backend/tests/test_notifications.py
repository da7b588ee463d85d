from __future__ import annotations

import pytest

from jobboard import celery_app as celery_module
from jobboard.core import config as app_config
from jobboard.core.errors import NotFoundError
from jobboard.models.notification import Notification, NotificationType
from jobboard.services import notifications as messages
from jobboard.services.notifications import NotificationDispatcher, NotificationMessage


def test_notify_missing_user(db_session):
    with pytest.raises(NotFoundError):
        NotificationDispatcher(db_session).notify(12345, NotificationType.CV_VIEWED, "t", "m")


def test_dispatch_delivers_inline_and_commits(db_session, owner, hr_user):
    NotificationDispatcher(db_session).dispatch(
        messages.application_received([hr_user.id, owner.id, hr_user.id], job_title="Dev", applicant_name="Casey", application_id=9)
    )
    rows = db_session.query(Notification).order_by(Notification.id).all()
    assert [r.user_id for r in rows] == [hr_user.id, owner.id]
    assert rows[0].message == "Casey has applied for your job: Dev"
    assert rows[0].priority == 3


def test_dispatch_disabled(db_session, owner):
    app_config.settings.NOTIFICATIONS_ENABLED = False
    NotificationDispatcher(db_session).dispatch(messages.cv_viewed(owner.id, company_name="Acme", application_id=1))
    assert db_session.query(Notification).count() == 0


def test_dispatch_enqueues_when_broker_configured(db_session, monkeypatch, owner):
    sent = []
    monkeypatch.setattr(celery_module, "BROKER_CONFIGURED", True)
    monkeypatch.setattr(celery_module, "enqueue", lambda task, payload: sent.append((task.name, payload)))

    NotificationDispatcher(db_session).dispatch(messages.job_expired(owner.id, job_title="Dev", job_id=3))

    assert db_session.query(Notification).count() == 0
    assert sent[0][0] == "notifications.deliver"
    assert sent[0][1]["type"] == "job_expired"
    assert sent[0][1]["recipient_ids"] == [owner.id]


def test_dispatch_swallows_enqueue_failure(db_session, monkeypatch, owner):
    def _broker_down(task, payload):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(celery_module, "BROKER_CONFIGURED", True)
    monkeypatch.setattr(celery_module, "enqueue", _broker_down)

    NotificationDispatcher(db_session).dispatch(messages.job_expired(owner.id, job_title="Dev", job_id=3))


def test_dispatch_builds_lazily_inside_guard(db_session, owner):
    NotificationDispatcher(db_session).dispatch(
        lambda: messages.cv_viewed(owner.id, company_name="Acme", application_id=1)
    )
    assert db_session.query(Notification).count() == 1

    def _broken():
        raise LookupError("recipients unavailable")

    NotificationDispatcher(db_session).dispatch(_broken)
    assert db_session.query(Notification).count() == 1


def test_dispatch_skips_builder_when_disabled(db_session):
    app_config.settings.NOTIFICATIONS_ENABLED = False
    calls = []
    NotificationDispatcher(db_session).dispatch(lambda: calls.append(1))
    assert calls == []


def test_payload_round_trip():
    msg = messages.application_status_changed(
        5, status="accepted", job_title="Dev", company_name="Acme", application_id=2
    )
    again = NotificationMessage.from_payload(msg.to_payload())
    assert again == msg
    assert again.type is NotificationType.APPLICATION_APPROVED


@pytest.mark.parametrize(
    "status,expected",
    [
        ("reviewing", NotificationType.APPLICATION_STATUS_CHANGED),
        ("shortlisted", NotificationType.APPLICATION_STATUS_CHANGED),
        ("accepted", NotificationType.APPLICATION_APPROVED),
        ("rejected", NotificationType.APPLICATION_REJECTED),
    ],
)
def test_status_message_types(status, expected):
    msg = messages.application_status_changed(1, status=status, job_title="Dev", company_name="Acme", application_id=1)
    assert msg.type is expected


def test_inbox_list_unread_and_mark_read(db_session, owner, outsider):
    svc = NotificationDispatcher(db_session)
    first = svc.notify(owner.id, "cv_viewed", "one", "m")
    svc.notify(owner.id, "cv_viewed", "two", "m")
    db_session.commit()

    assert svc.unread_count(owner.id) == 2
    assert [n.title for n in svc.list_for_user(owner.id)] == ["two", "one"]

    with pytest.raises(NotFoundError):
        svc.mark_read(first.id, outsider.id)

    row = svc.mark_read(first.id, owner.id)
    assert row.is_read is True and row.read_at is not None
    assert svc.unread_count(owner.id) == 1
    assert [n.title for n in svc.list_for_user(owner.id, unread_only=True)] == ["two"]


def test_notification_routes(db_session, client_for, owner):
    svc = NotificationDispatcher(db_session)
    n = svc.notify(owner.id, "job_expired", "Job Expired", "bye")
    db_session.commit()

    with client_for(owner) as c:
        assert c.get("/notifications/unread-count").json() == {"unread": 1}
        items = c.get("/notifications").json()
        assert items[0]["id"] == n.id
        res = c.post(f"/notifications/{n.id}/read")
        assert res.status_code == 200
        assert res.json()["is_read"] is True
        assert c.post("/notifications/9999/read").status_code == 404
