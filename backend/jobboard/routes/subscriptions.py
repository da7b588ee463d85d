from __future__ import annotations

from fastapi import APIRouter, Depends, status

from jobboard.dependencies.admin import require_admin_user
from jobboard.dependencies.auth import get_current_user
from jobboard.dependencies.services import get_access_resolver, get_subscription_gate
from jobboard.models.user import User
from jobboard.schemas.subscription import (
    QuotaOut,
    SubscriptionAutoRenewUpdate,
    SubscriptionCreate,
    SubscriptionOut,
    SubscriptionStatsOut,
    SubscriptionUpgrade,
)
from jobboard.services.company_access import CompanyAccessResolver
from jobboard.services.subscriptions import SubscriptionGate


router = APIRouter(tags=["subscriptions"], dependencies=[Depends(get_current_user)])


@router.get("/companies/{company_id}/subscription", response_model=QuotaOut)
def get_company_subscription(
    company_id: int,
    user: User = Depends(get_current_user),
    access: CompanyAccessResolver = Depends(get_access_resolver),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    access.require(user.id, company_id)
    decision = gate.can_publish(company_id)
    return {
        "can_publish": decision.allowed,
        "reason": decision.reason,
        "subscription": decision.subscription,
    }


@router.get("/companies/{company_id}/subscriptions", response_model=list[SubscriptionOut])
def list_company_subscriptions(
    company_id: int,
    user: User = Depends(get_current_user),
    access: CompanyAccessResolver = Depends(get_access_resolver),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    access.require(user.id, company_id)
    return gate.list_for_company(company_id)


@router.post(
    "/companies/{company_id}/subscriptions",
    response_model=SubscriptionOut,
    status_code=status.HTTP_201_CREATED,
)
def create_company_subscription(
    company_id: int,
    payload: SubscriptionCreate,
    user: User = Depends(get_current_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.create_subscription(company_id, user.id, payload.plan_id, payload.billing_cycle)


@router.post("/subscriptions/{subscription_id}/activate", response_model=SubscriptionOut)
def activate_subscription(
    subscription_id: int,
    _admin: User = Depends(require_admin_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.activate(subscription_id)


@router.post("/subscriptions/{subscription_id}/cancel", response_model=SubscriptionOut)
def cancel_subscription(
    subscription_id: int,
    user: User = Depends(get_current_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.cancel(subscription_id, user.id)


@router.post(
    "/subscriptions/{subscription_id}/upgrade",
    response_model=SubscriptionOut,
    status_code=status.HTTP_201_CREATED,
)
def upgrade_subscription(
    subscription_id: int,
    payload: SubscriptionUpgrade,
    user: User = Depends(get_current_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.upgrade(subscription_id, user.id, payload.plan_id, payload.billing_cycle)


@router.post("/subscriptions/{subscription_id}/renew", response_model=SubscriptionOut)
def renew_subscription(
    subscription_id: int,
    _admin: User = Depends(require_admin_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.renew(subscription_id)


@router.patch("/subscriptions/{subscription_id}/auto-renew", response_model=SubscriptionOut)
def update_auto_renew(
    subscription_id: int,
    payload: SubscriptionAutoRenewUpdate,
    user: User = Depends(get_current_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.set_auto_renew(subscription_id, user.id, payload.auto_renew)


@router.get("/subscriptions/stats", response_model=SubscriptionStatsOut)
def subscription_stats(
    _admin: User = Depends(require_admin_user),
    gate: SubscriptionGate = Depends(get_subscription_gate),
):
    return gate.stats()
