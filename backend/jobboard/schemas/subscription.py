from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class SubscriptionCreate(BaseModel):
    plan_id: int
    billing_cycle: Literal["monthly", "yearly"] = "monthly"


class SubscriptionUpgrade(BaseModel):
    plan_id: int
    billing_cycle: Literal["monthly", "yearly"] = "monthly"


class SubscriptionAutoRenewUpdate(BaseModel):
    auto_renew: bool


class SubscriptionPlanOut(BaseModel):
    id: int
    name: str
    plan_type: str
    max_jobs: int
    max_applications: int
    monthly_price: Decimal
    yearly_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class SubscriptionOut(BaseModel):
    id: int
    company_id: int
    plan_id: int
    status: str
    billing_cycle: str
    price: Decimal
    auto_renew: bool
    renewed_from_id: Optional[int] = None
    jobs_posted: int
    applications_viewed: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    plan: SubscriptionPlanOut

    model_config = ConfigDict(from_attributes=True)


class QuotaOut(BaseModel):
    """Current subscription plus whether another job can be published."""

    can_publish: bool
    reason: Optional[str] = None
    subscription: Optional[SubscriptionOut] = None


class SubscriptionStatsOut(BaseModel):
    total: int
    active: int
    by_status: dict[str, int]
    by_plan: dict[str, int]
    monthly_revenue: Decimal
    yearly_revenue: Decimal

    model_config = ConfigDict(from_attributes=True)
