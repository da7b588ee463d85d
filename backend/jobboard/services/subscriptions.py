from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobboard.core.config import settings
from jobboard.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
)
from jobboard.core.timeutils import as_utc, utcnow
from jobboard.models.company import Company
from jobboard.models.subscription import (
    BillingCycle,
    PlanType,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    BillingCycle.MONTHLY.value: 30,
    BillingCycle.YEARLY.value: 365,
}


@dataclass
class QuotaDecision:
    allowed: bool
    reason: str | None
    subscription: Subscription | None


@dataclass
class SubscriptionStats:
    total: int
    active: int
    by_status: dict[str, int]
    by_plan: dict[str, int]
    monthly_revenue: Decimal
    yearly_revenue: Decimal


class SubscriptionGate:
    """
    Owns the per-company publishing and application-view quotas.

    Counters are only ever moved with a conditional UPDATE
    (`... WHERE counter < limit`), so two requests racing at the limit cannot
    both succeed. `record_*` calls flush but never commit: they join the
    caller's transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- lookups ---

    def get_active(self, company_id: int) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.company_id == company_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(Subscription.id.desc())
            .first()
        )

    def get_pending(self, company_id: int) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.company_id == company_id,
                Subscription.status == SubscriptionStatus.PENDING.value,
            )
            .order_by(Subscription.id.desc())
            .first()
        )

    def list_for_company(self, company_id: int) -> list[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.company_id == company_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .all()
        )

    def _get(self, subscription_id: int) -> Subscription:
        sub = self.db.get(Subscription, subscription_id)
        if not sub:
            raise NotFoundError("Subscription not found")
        return sub

    def _get_plan(self, plan_id: int) -> SubscriptionPlan:
        plan = self.db.get(SubscriptionPlan, plan_id)
        if not plan or not plan.is_active:
            raise NotFoundError("Subscription plan not found")
        return plan

    def _owned_company(self, actor_id: int, company_id: int) -> Company:
        company = self.db.get(Company, company_id)
        if not company:
            raise NotFoundError("Company not found")
        if company.owner_id != actor_id:
            raise ForbiddenError("Only the company owner can manage subscriptions")
        return company

    # --- free plan provisioning ---

    def free_plan(self) -> SubscriptionPlan:
        plan = (
            self.db.query(SubscriptionPlan)
            .filter(
                SubscriptionPlan.plan_type == PlanType.FREE.value,
                SubscriptionPlan.is_active.is_(True),
            )
            .order_by(SubscriptionPlan.id.asc())
            .first()
        )
        if plan:
            return plan

        plan = SubscriptionPlan(
            name=settings.FREE_PLAN_NAME,
            plan_type=PlanType.FREE.value,
            max_jobs=settings.FREE_PLAN_MAX_JOBS,
            max_applications=settings.FREE_PLAN_MAX_APPLICATIONS,
            monthly_price=Decimal("0"),
            yearly_price=Decimal("0"),
            is_active=True,
        )
        self.db.add(plan)
        self.db.flush()
        logger.info("Provisioned free plan %s (max_jobs=%s)", plan.id, plan.max_jobs)
        return plan

    def _provision_free(self, company_id: int) -> Subscription:
        now = utcnow()
        try:
            plan = self.free_plan()
            sub = Subscription(
                company_id=company_id,
                plan_id=plan.id,
                status=SubscriptionStatus.ACTIVE.value,
                billing_cycle=BillingCycle.MONTHLY.value,
                price=Decimal("0"),
                start_date=now,
                end_date=now + timedelta(days=PERIOD_DAYS[BillingCycle.MONTHLY.value]),
            )
            self.db.add(sub)
            self.db.commit()
        except IntegrityError:
            # Another request provisioned first; use theirs.
            self.db.rollback()
            existing = self.get_active(company_id)
            if not existing:
                raise
            return existing

        self.db.refresh(sub)
        logger.info("Auto-provisioned free subscription %s for company %s", sub.id, company_id)
        return sub

    def _resolve(self, company_id: int) -> tuple[Subscription | None, str | None]:
        sub = self.get_active(company_id)
        if sub:
            return sub, None
        if self.get_pending(company_id):
            return None, "Subscription pending activation"
        return self._provision_free(company_id), None

    # --- publishing quota ---

    def can_publish(self, company_id: int) -> QuotaDecision:
        sub, reason = self._resolve(company_id)
        if not sub:
            return QuotaDecision(allowed=False, reason=reason, subscription=None)

        limit = int(sub.plan.max_jobs)
        if sub.jobs_posted >= limit:
            logger.warning(
                "Publish denied for company %s: %s/%s jobs on plan %s",
                company_id,
                sub.jobs_posted,
                limit,
                sub.plan.name,
            )
            return QuotaDecision(
                allowed=False,
                reason=f"Job posting limit reached ({limit} jobs on {sub.plan.name})",
                subscription=sub,
            )
        return QuotaDecision(allowed=True, reason=None, subscription=sub)

    def record_publish(self, company_id: int) -> Subscription:
        sub = self.get_active(company_id)
        if not sub:
            raise QuotaExceededError("No active subscription")

        result = self.db.execute(
            update(Subscription)
            .where(
                Subscription.id == sub.id,
                Subscription.jobs_posted < int(sub.plan.max_jobs),
            )
            .values(jobs_posted=Subscription.jobs_posted + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise QuotaExceededError(f"Job posting limit reached ({sub.plan.max_jobs} jobs on {sub.plan.name})")

        self.db.expire(sub, ["jobs_posted"])
        return sub

    # --- application view quota ---

    def can_view_application(self, company_id: int) -> QuotaDecision:
        sub, reason = self._resolve(company_id)
        if not sub:
            return QuotaDecision(allowed=False, reason=reason, subscription=None)

        limit = int(sub.plan.max_applications)
        if sub.applications_viewed >= limit:
            logger.warning(
                "Application view denied for company %s: %s/%s on plan %s",
                company_id,
                sub.applications_viewed,
                limit,
                sub.plan.name,
            )
            return QuotaDecision(
                allowed=False,
                reason=f"Application view limit reached ({limit} on {sub.plan.name})",
                subscription=sub,
            )
        return QuotaDecision(allowed=True, reason=None, subscription=sub)

    def record_application_view(self, company_id: int) -> Subscription:
        sub = self.get_active(company_id)
        if not sub:
            raise QuotaExceededError("No active subscription")

        result = self.db.execute(
            update(Subscription)
            .where(
                Subscription.id == sub.id,
                Subscription.applications_viewed < int(sub.plan.max_applications),
            )
            .values(applications_viewed=Subscription.applications_viewed + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise QuotaExceededError(
                f"Application view limit reached ({sub.plan.max_applications} on {sub.plan.name})"
            )

        self.db.expire(sub, ["applications_viewed"])
        return sub

    # --- subscription management ---

    def _new_subscription(
        self,
        company_id: int,
        actor_id: int,
        plan: SubscriptionPlan,
        billing_cycle: str,
    ) -> Subscription:
        cycle = (billing_cycle or BillingCycle.MONTHLY.value).strip().lower()
        if cycle not in PERIOD_DAYS:
            raise InvalidStateError(f"Unsupported billing cycle: {billing_cycle}")

        price = plan.yearly_price if cycle == BillingCycle.YEARLY.value else plan.monthly_price
        sub = Subscription(
            company_id=company_id,
            plan_id=plan.id,
            created_by_id=actor_id,
            billing_cycle=cycle,
            price=price or Decimal("0"),
            status=SubscriptionStatus.PENDING.value,
        )
        if plan.plan_type == PlanType.FREE.value:
            self._start(sub)
        return sub

    def _start(self, sub: Subscription) -> None:
        now = utcnow()
        sub.status = SubscriptionStatus.ACTIVE.value
        sub.start_date = now
        sub.end_date = now + timedelta(days=PERIOD_DAYS.get(sub.billing_cycle, 30))

    def _cancel(self, sub: Subscription) -> None:
        sub.status = SubscriptionStatus.CANCELLED.value
        sub.cancelled_at = utcnow()

    def create_subscription(
        self,
        company_id: int,
        actor_id: int,
        plan_id: int,
        billing_cycle: str = BillingCycle.MONTHLY.value,
    ) -> Subscription:
        self._owned_company(actor_id, company_id)
        plan = self._get_plan(plan_id)

        if self.get_active(company_id):
            raise ConflictError("Company already has an active subscription; upgrade it instead")
        if self.get_pending(company_id):
            raise ConflictError("A subscription is already pending activation")

        sub = self._new_subscription(company_id, actor_id, plan, billing_cycle)
        self.db.add(sub)
        self.db.commit()
        self.db.refresh(sub)
        logger.info(
            "Subscription %s created for company %s on plan %s (%s)",
            sub.id,
            company_id,
            plan.name,
            sub.status,
        )
        return sub

    def activate(self, subscription_id: int) -> Subscription:
        """Payment confirmed: pending -> active, retiring the previous active row."""
        sub = self._get(subscription_id)
        if sub.status != SubscriptionStatus.PENDING.value:
            raise InvalidStateError("Only pending subscriptions can be activated")

        previous = self.get_active(sub.company_id)
        if previous:
            self._cancel(previous)
            # The partial unique index only allows one active row per company.
            self.db.flush()

        self._start(sub)
        self.db.commit()
        self.db.refresh(sub)
        logger.info(
            "Subscription %s activated for company %s (replaced %s)",
            sub.id,
            sub.company_id,
            previous.id if previous else None,
        )
        return sub

    def cancel(self, subscription_id: int, actor_id: int) -> Subscription:
        sub = self._get(subscription_id)
        self._owned_company(actor_id, sub.company_id)
        if sub.status == SubscriptionStatus.CANCELLED.value:
            raise InvalidStateError("Subscription is already cancelled")
        if sub.status == SubscriptionStatus.EXPIRED.value:
            raise InvalidStateError("Subscription has already expired")

        self._cancel(sub)
        self.db.commit()
        self.db.refresh(sub)
        logger.info("Subscription %s cancelled for company %s", sub.id, sub.company_id)
        return sub

    def upgrade(
        self,
        subscription_id: int,
        actor_id: int,
        new_plan_id: int,
        billing_cycle: str = BillingCycle.MONTHLY.value,
    ) -> Subscription:
        """
        Never swaps the plan in place: a new subscription row is created and
        the current one is kept as history. Free targets take effect
        immediately; paid targets wait for `activate`.
        """
        current = self._get(subscription_id)
        self._owned_company(actor_id, current.company_id)
        if current.status != SubscriptionStatus.ACTIVE.value:
            raise InvalidStateError("Only an active subscription can be upgraded")

        plan = self._get_plan(new_plan_id)
        if plan.id == current.plan_id:
            raise InvalidStateError("Subscription is already on this plan")
        if self.get_pending(current.company_id):
            raise ConflictError("A subscription is already pending activation")

        new_sub = self._new_subscription(current.company_id, actor_id, plan, billing_cycle)
        if new_sub.status == SubscriptionStatus.ACTIVE.value:
            self._cancel(current)
            self.db.flush()

        self.db.add(new_sub)
        self.db.commit()
        self.db.refresh(new_sub)
        logger.info(
            "Subscription %s for company %s upgraded to plan %s as %s (%s)",
            current.id,
            current.company_id,
            plan.name,
            new_sub.id,
            new_sub.status,
        )
        return new_sub

    # --- renewal ---

    def _roll_over(self, sub: Subscription, now: datetime) -> Subscription:
        """Close the current period and open the next one on a fresh row."""
        end = as_utc(sub.end_date) if sub.end_date else None
        start = end if end and end > now else now

        sub.status = SubscriptionStatus.EXPIRED.value
        self.db.flush()

        renewed = Subscription(
            company_id=sub.company_id,
            plan_id=sub.plan_id,
            created_by_id=sub.created_by_id,
            billing_cycle=sub.billing_cycle,
            price=sub.price,
            auto_renew=True,
            renewed_from_id=sub.id,
            status=SubscriptionStatus.ACTIVE.value,
            start_date=start,
            end_date=start + timedelta(days=PERIOD_DAYS.get(sub.billing_cycle, 30)),
        )
        self.db.add(renewed)
        self.db.commit()
        self.db.refresh(renewed)
        logger.info(
            "Subscription %s renewed as %s for company %s until %s",
            sub.id,
            renewed.id,
            renewed.company_id,
            renewed.end_date,
        )
        return renewed

    def renew(self, subscription_id: int, now: datetime | None = None) -> Subscription:
        sub = self._get(subscription_id)
        if sub.status != SubscriptionStatus.ACTIVE.value:
            raise InvalidStateError("Only active subscriptions can be renewed")
        if not sub.auto_renew:
            raise InvalidStateError("Auto-renewal is disabled for this subscription")
        if not sub.plan.is_active:
            raise InvalidStateError("Subscription plan is no longer available")
        return self._roll_over(sub, as_utc(now) if now else utcnow())

    def set_auto_renew(self, subscription_id: int, actor_id: int, enabled: bool) -> Subscription:
        sub = self._get(subscription_id)
        self._owned_company(actor_id, sub.company_id)
        if sub.status not in (SubscriptionStatus.PENDING.value, SubscriptionStatus.ACTIVE.value):
            raise InvalidStateError(f"Cannot change auto-renewal on a {sub.status} subscription")

        sub.auto_renew = bool(enabled)
        self.db.commit()
        self.db.refresh(sub)
        logger.info("Subscription %s auto_renew=%s by user %s", sub.id, sub.auto_renew, actor_id)
        return sub

    def renew_due(self, now: datetime | None = None) -> int:
        """
        Roll over every active subscription whose period has ended. Rows that
        cannot renew are expired, so the company falls back to the free plan
        on its next publish. Returns the number renewed.
        """
        cutoff = as_utc(now) if now else utcnow()
        due = (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.end_date.isnot(None),
                Subscription.end_date <= cutoff,
            )
            .order_by(Subscription.id.asc())
            .all()
        )

        renewed = 0
        for sub in due:
            if sub.auto_renew and sub.plan.is_active:
                self._roll_over(sub, cutoff)
                renewed += 1
                continue
            sub.status = SubscriptionStatus.EXPIRED.value
            self.db.commit()
            logger.info("Subscription %s for company %s expired without renewal", sub.id, sub.company_id)
        return renewed

    # --- reporting ---

    def stats(self) -> SubscriptionStats:
        status_rows = (
            self.db.query(Subscription.status, func.count(Subscription.id))
            .group_by(Subscription.status)
            .all()
        )
        plan_rows = (
            self.db.query(SubscriptionPlan.name, func.count(Subscription.id))
            .select_from(Subscription)
            .join(SubscriptionPlan, SubscriptionPlan.id == Subscription.plan_id)
            .group_by(SubscriptionPlan.name)
            .all()
        )
        # Revenue is the list price of active rows; there is no payment ledger.
        revenue_rows = (
            self.db.query(Subscription.billing_cycle, func.sum(Subscription.price))
            .filter(Subscription.status == SubscriptionStatus.ACTIVE.value)
            .group_by(Subscription.billing_cycle)
            .all()
        )

        by_status = {status: int(count) for status, count in status_rows}
        revenue = {cycle: Decimal(str(total or 0)) for cycle, total in revenue_rows}
        return SubscriptionStats(
            total=sum(by_status.values()),
            active=by_status.get(SubscriptionStatus.ACTIVE.value, 0),
            by_status=by_status,
            by_plan={name: int(count) for name, count in plan_rows},
            monthly_revenue=revenue.get(BillingCycle.MONTHLY.value, Decimal("0")),
            yearly_revenue=revenue.get(BillingCycle.YEARLY.value, Decimal("0")),
        )
