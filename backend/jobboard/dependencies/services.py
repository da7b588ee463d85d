"""
Builds the service graph for one request. Every service shares the
request's session; the resolver, gate and dispatcher are constructed once
and handed to the managers that need them.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from jobboard.core.database import get_db
from jobboard.services.applications import ApplicationLifecycleManager
from jobboard.services.company_access import CompanyAccessResolver
from jobboard.services.cv import ProfileCVLookup
from jobboard.services.hr_assignments import HRAssignmentService
from jobboard.services.jobs import JobPublishingManager
from jobboard.services.notifications import NotificationDispatcher
from jobboard.services.subscriptions import SubscriptionGate


def get_hr_assignments(db: Session = Depends(get_db)) -> HRAssignmentService:
    return HRAssignmentService(db)


def get_access_resolver(
    db: Session = Depends(get_db),
    hr_assignments: HRAssignmentService = Depends(get_hr_assignments),
) -> CompanyAccessResolver:
    return CompanyAccessResolver(db, hr_assignments)


def get_subscription_gate(db: Session = Depends(get_db)) -> SubscriptionGate:
    return SubscriptionGate(db)


def get_notification_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


def get_application_manager(
    db: Session = Depends(get_db),
    access: CompanyAccessResolver = Depends(get_access_resolver),
    gate: SubscriptionGate = Depends(get_subscription_gate),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ApplicationLifecycleManager:
    return ApplicationLifecycleManager(db, access, gate, notifier, ProfileCVLookup(db))


def get_job_manager(
    db: Session = Depends(get_db),
    access: CompanyAccessResolver = Depends(get_access_resolver),
    gate: SubscriptionGate = Depends(get_subscription_gate),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> JobPublishingManager:
    return JobPublishingManager(db, access, gate, notifier)
