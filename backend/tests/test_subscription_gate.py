from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from jobboard.core import config as app_config
from jobboard.core.errors import ConflictError, ForbiddenError, InvalidStateError, QuotaExceededError
from jobboard.models.company import Company
from jobboard.models.subscription import PlanType, Subscription, SubscriptionPlan, SubscriptionStatus
from jobboard.services.jobs import JobSpec
from jobboard.services.subscriptions import SubscriptionGate

from conftest import naive


def _active_rows(db, company_id):
    return (
        db.query(Subscription)
        .filter(Subscription.company_id == company_id, Subscription.status == SubscriptionStatus.ACTIVE.value)
        .all()
    )


def test_can_publish_auto_provisions_free_subscription(db_session, company, free_plan):
    gate = SubscriptionGate(db_session)
    assert gate.get_active(company.id) is None

    decision = gate.can_publish(company.id)

    assert decision.allowed is True
    assert decision.reason is None
    assert decision.subscription.plan_id == free_plan.id
    assert decision.subscription.status == SubscriptionStatus.ACTIVE.value
    assert decision.subscription.jobs_posted == 0


def test_auto_provisioning_is_idempotent(db_session, company, free_plan):
    gate = SubscriptionGate(db_session)
    first = gate.can_publish(company.id).subscription
    second = gate.can_publish(company.id).subscription

    assert first.id == second.id
    assert len(_active_rows(db_session, company.id)) == 1


def test_free_plan_is_created_from_settings_when_missing(db_session, company):
    app_config.settings.FREE_PLAN_MAX_JOBS = 3
    app_config.settings.FREE_PLAN_MAX_APPLICATIONS = 5

    decision = SubscriptionGate(db_session).can_publish(company.id)

    plan = db_session.query(SubscriptionPlan).filter(SubscriptionPlan.plan_type == PlanType.FREE.value).one()
    assert plan.max_jobs == 3
    assert plan.max_applications == 5
    assert decision.allowed is True


def test_free_plan_with_zero_jobs_denies(db_session, company):
    app_config.settings.FREE_PLAN_MAX_JOBS = 0
    decision = SubscriptionGate(db_session).can_publish(company.id)
    assert decision.allowed is False
    assert "limit" in decision.reason


def test_record_publish_stops_at_limit(db_session, company, free_plan):
    gate = SubscriptionGate(db_session)
    gate.can_publish(company.id)

    gate.record_publish(company.id)
    db_session.commit()
    with pytest.raises(QuotaExceededError):
        gate.record_publish(company.id)

    assert gate.get_active(company.id).jobs_posted == 1


def test_free_plan_second_publish_is_rejected(db_session, company, owner, free_plan, job_manager):
    job_a = job_manager.create(company.id, owner.id, JobSpec(title="Job A"))
    assert job_a.status == "published"
    assert SubscriptionGate(db_session).get_active(company.id).jobs_posted == 1

    with pytest.raises(QuotaExceededError):
        job_manager.create(company.id, owner.id, JobSpec(title="Job B"))

    assert SubscriptionGate(db_session).get_active(company.id).jobs_posted == 1


def test_application_view_quota(db_session, company):
    app_config.settings.FREE_PLAN_MAX_APPLICATIONS = 1
    gate = SubscriptionGate(db_session)

    assert gate.can_view_application(company.id).allowed is True
    gate.record_application_view(company.id)
    db_session.commit()

    decision = gate.can_view_application(company.id)
    assert decision.allowed is False
    with pytest.raises(QuotaExceededError):
        gate.record_application_view(company.id)


def test_paid_subscription_starts_pending_and_blocks_publishing(db_session, company, owner, premium_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, premium_plan.id, "yearly")

    assert sub.status == SubscriptionStatus.PENDING.value
    assert sub.price == Decimal("490.00")

    decision = gate.can_publish(company.id)
    assert decision.allowed is False
    assert decision.reason == "Subscription pending activation"

    active = gate.activate(sub.id)
    assert active.status == SubscriptionStatus.ACTIVE.value
    assert active.start_date is not None and active.end_date is not None
    assert gate.can_publish(company.id).allowed is True


def test_free_subscription_starts_active(db_session, company, owner, free_plan):
    sub = SubscriptionGate(db_session).create_subscription(company.id, owner.id, free_plan.id)
    assert sub.status == SubscriptionStatus.ACTIVE.value


def test_create_subscription_conflicts_with_active(db_session, company, owner, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    gate.create_subscription(company.id, owner.id, free_plan.id)
    with pytest.raises(ConflictError):
        gate.create_subscription(company.id, owner.id, premium_plan.id)


def test_only_owner_manages_subscriptions(db_session, company, hr_user, hr_assignment, premium_plan):
    with pytest.raises(ForbiddenError):
        SubscriptionGate(db_session).create_subscription(company.id, hr_user.id, premium_plan.id)


def test_upgrade_to_paid_keeps_current_until_activation(db_session, company, owner, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    current = gate.create_subscription(company.id, owner.id, free_plan.id)

    upgraded = gate.upgrade(current.id, owner.id, premium_plan.id)
    assert upgraded.id != current.id
    assert upgraded.status == SubscriptionStatus.PENDING.value
    assert gate.get_active(company.id).id == current.id

    gate.activate(upgraded.id)
    db_session.refresh(current)
    assert current.status == SubscriptionStatus.CANCELLED.value
    assert current.cancelled_at is not None
    assert [s.id for s in _active_rows(db_session, company.id)] == [upgraded.id]
    # History is preserved.
    assert len(gate.list_for_company(company.id)) == 2


def test_upgrade_to_free_switches_immediately(db_session, company, owner, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    paid = gate.activate(gate.create_subscription(company.id, owner.id, premium_plan.id).id)

    downgraded = gate.upgrade(paid.id, owner.id, free_plan.id)

    db_session.refresh(paid)
    assert downgraded.status == SubscriptionStatus.ACTIVE.value
    assert paid.status == SubscriptionStatus.CANCELLED.value


def test_upgrade_to_same_plan_rejected(db_session, company, owner, free_plan):
    gate = SubscriptionGate(db_session)
    current = gate.create_subscription(company.id, owner.id, free_plan.id)
    with pytest.raises(InvalidStateError):
        gate.upgrade(current.id, owner.id, free_plan.id)


def test_cancel_and_activate_state_checks(db_session, company, owner, free_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, free_plan.id)

    with pytest.raises(InvalidStateError):
        gate.activate(sub.id)

    cancelled = gate.cancel(sub.id, owner.id)
    assert cancelled.status == SubscriptionStatus.CANCELLED.value
    with pytest.raises(InvalidStateError):
        gate.cancel(sub.id, owner.id)


def test_subscription_routes(client_for, company, owner, hr_user, hr_assignment, admin_user, outsider, free_plan, premium_plan):
    with client_for(hr_user) as c:
        res = c.get(f"/companies/{company.id}/subscription")
        assert res.status_code == 200
        body = res.json()
        assert body["can_publish"] is True
        assert body["subscription"]["plan"]["plan_type"] == "free"

    with client_for(outsider) as c:
        assert c.get(f"/companies/{company.id}/subscription").status_code == 403

    with client_for(owner) as c:
        current_id = c.get(f"/companies/{company.id}/subscriptions").json()[0]["id"]
        res = c.post(f"/subscriptions/{current_id}/upgrade", json={"plan_id": premium_plan.id})
        assert res.status_code == 201
        pending_id = res.json()["id"]
        assert res.json()["status"] == "pending"

        # Activation is an admin/payment action.
        assert c.post(f"/subscriptions/{pending_id}/activate").status_code == 403

    with client_for(admin_user) as c:
        res = c.post(f"/subscriptions/{pending_id}/activate")
        assert res.status_code == 200
        assert res.json()["status"] == "active"

    with client_for(owner) as c:
        statuses = {s["id"]: s["status"] for s in c.get(f"/companies/{company.id}/subscriptions").json()}
        assert statuses == {current_id: "cancelled", pending_id: "active"}


def _second_company(db, owner_id):
    c = Company(name="Globex", owner_id=owner_id)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def test_renew_starts_a_fresh_period_with_reset_counters(db_session, company, owner, free_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, free_plan.id)
    gate.record_publish(company.id)
    db_session.commit()
    assert gate.can_publish(company.id).allowed is False
    old_end = sub.end_date

    renewed = gate.renew(sub.id)

    assert renewed.id != sub.id
    assert renewed.renewed_from_id == sub.id
    assert renewed.status == SubscriptionStatus.ACTIVE.value
    assert renewed.jobs_posted == 0 and renewed.applications_viewed == 0
    assert naive(renewed.start_date) == naive(old_end)
    assert naive(renewed.end_date) == naive(old_end) + timedelta(days=30)

    previous = db_session.get(Subscription, sub.id)
    assert previous.status == SubscriptionStatus.EXPIRED.value
    assert previous.jobs_posted == 1
    assert [s.id for s in _active_rows(db_session, company.id)] == [renewed.id]
    assert gate.can_publish(company.id).allowed is True


def test_renew_state_checks(db_session, company, owner, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, free_plan.id)

    off = gate.set_auto_renew(sub.id, owner.id, False)
    assert off.auto_renew is False
    with pytest.raises(InvalidStateError, match="Auto-renewal is disabled"):
        gate.renew(sub.id)

    gate.cancel(sub.id, owner.id)
    with pytest.raises(InvalidStateError, match="Only active"):
        gate.renew(sub.id)
    with pytest.raises(InvalidStateError):
        gate.set_auto_renew(sub.id, owner.id, True)

    pending = gate.create_subscription(company.id, owner.id, premium_plan.id)
    with pytest.raises(InvalidStateError, match="Only active"):
        gate.renew(pending.id)


def test_only_owner_toggles_auto_renew(db_session, company, owner, hr_user, hr_assignment, free_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, free_plan.id)
    with pytest.raises(ForbiddenError):
        gate.set_auto_renew(sub.id, hr_user.id, False)


def test_renew_due_rolls_over_or_expires(db_session, company, owner, outsider, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    other = _second_company(db_session, outsider.id)

    free_sub = gate.create_subscription(company.id, owner.id, free_plan.id)
    paid_sub = gate.activate(gate.create_subscription(other.id, outsider.id, premium_plan.id).id)
    gate.set_auto_renew(paid_sub.id, outsider.id, False)

    now = datetime.now(timezone.utc)
    for sub in (free_sub, paid_sub):
        sub.end_date = now - timedelta(days=1)
    db_session.commit()

    assert gate.renew_due(now) == 1

    renewed = _active_rows(db_session, company.id)
    assert len(renewed) == 1
    assert renewed[0].renewed_from_id == free_sub.id
    assert naive(renewed[0].start_date) == naive(now)

    assert db_session.get(Subscription, paid_sub.id).status == SubscriptionStatus.EXPIRED.value
    assert _active_rows(db_session, other.id) == []

    # Lapsed company falls back to an auto-provisioned free subscription.
    decision = gate.can_publish(other.id)
    assert decision.allowed is True
    assert decision.subscription.plan.plan_type == PlanType.FREE.value


def test_renew_due_ignores_current_periods(db_session, company, owner, free_plan):
    gate = SubscriptionGate(db_session)
    gate.create_subscription(company.id, owner.id, free_plan.id)
    assert gate.renew_due() == 0


def test_cancel_expired_subscription_rejected(db_session, company, owner, free_plan):
    gate = SubscriptionGate(db_session)
    sub = gate.create_subscription(company.id, owner.id, free_plan.id)
    gate.renew(sub.id)
    with pytest.raises(InvalidStateError, match="expired"):
        gate.cancel(sub.id, owner.id)


def test_stats(db_session, company, owner, outsider, free_plan, premium_plan):
    gate = SubscriptionGate(db_session)
    other = _second_company(db_session, outsider.id)

    gate.create_subscription(company.id, owner.id, free_plan.id)
    gate.activate(gate.create_subscription(other.id, outsider.id, premium_plan.id, "yearly").id)
    stats = gate.stats()
    assert stats.total == 2
    assert stats.active == 2
    assert stats.by_status == {"active": 2}
    assert stats.by_plan == {"Free Plan": 1, "Premium": 1}
    assert stats.yearly_revenue == Decimal("490")
    assert stats.monthly_revenue == Decimal("0")


def test_renewal_and_stats_routes(client_for, company, owner, admin_user, free_plan):
    with client_for(owner) as c:
        res = c.post(f"/companies/{company.id}/subscriptions", json={"plan_id": free_plan.id})
        assert res.status_code == 201
        sub_id = res.json()["id"]
        assert res.json()["auto_renew"] is True

        assert c.post(f"/subscriptions/{sub_id}/renew").status_code == 403
        assert c.get("/subscriptions/stats").status_code == 403

    with client_for(admin_user) as c:
        res = c.post(f"/subscriptions/{sub_id}/renew")
        assert res.status_code == 200
        renewed_id = res.json()["id"]
        assert res.json()["renewed_from_id"] == sub_id

        stats = c.get("/subscriptions/stats").json()
        assert stats["total"] == 2
        assert stats["by_status"] == {"active": 1, "expired": 1}

    with client_for(owner) as c:
        res = c.patch(f"/subscriptions/{renewed_id}/auto-renew", json={"auto_renew": False})
        assert res.status_code == 200
        assert res.json()["auto_renew"] is False

    with client_for(admin_user) as c:
        res = c.post(f"/subscriptions/{renewed_id}/renew")
        assert res.status_code == 400
        assert res.json()["error"] == "INVALID_STATE"
