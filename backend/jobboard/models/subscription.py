from __future__ import annotations

from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jobboard.core.base import Base


class PlanType(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    plan_type = Column(String(20), nullable=False, index=True)

    max_jobs = Column(Integer, nullable=False)
    max_applications = Column(Integer, nullable=False)

    monthly_price = Column(Numeric(10, 2), nullable=False, server_default="0", default=0)
    yearly_price = Column(Numeric(10, 2), nullable=False, server_default="0", default=0)

    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_id = Column(
        Integer,
        ForeignKey("subscription_plans.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # pending -> active -> cancelled | expired (free plans start active)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.PENDING.value)
    billing_cycle = Column(String(20), nullable=False, default=BillingCycle.MONTHLY.value)
    price = Column(Numeric(10, 2), nullable=False, server_default="0", default=0)
    auto_renew = Column(Boolean, nullable=False, server_default="true", default=True)
    # Set on the row created by a renewal; points at the period it replaced.
    renewed_from_id = Column(
        Integer,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Per-period counters; changed only through SubscriptionGate. A renewal starts a new row at zero.
    jobs_posted = Column(Integer, nullable=False, server_default="0", default=0)
    applications_viewed = Column(Integer, nullable=False, server_default="0", default=0)

    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    plan = relationship("SubscriptionPlan", lazy="joined")
    company = relationship("Company")

    __table_args__ = (
        # At most one active subscription per company.
        Index(
            "uq_subscriptions_company_active",
            "company_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_subscriptions_status_end_date", "status", "end_date"),
    )
