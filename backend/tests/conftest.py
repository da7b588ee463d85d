import os
from datetime import timezone

# Ensure JWT_SECRET exists before importing jobboard.main (it calls require_jwt_secret() at import time).
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
# Notifications are delivered inline unless a test opts into the Celery path.
os.environ["CELERY_BROKER_URL"] = ""

from contextlib import contextmanager
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from jobboard.core.base import Base
from jobboard.core import config as app_config

# Import models so they register with SQLAlchemy metadata.
from jobboard.models.user import User, UserRole
from jobboard.models.company import Company, HRCompanyAssignment
from jobboard.models.job_seeker_profile import JobSeekerProfile  # noqa: F401
from jobboard.models.job import Job, JobCategory, JobTag, JobView, Skill  # noqa: F401
from jobboard.models.application import Application  # noqa: F401
from jobboard.models.application_event import ApplicationEvent  # noqa: F401
from jobboard.models.subscription import PlanType, SubscriptionPlan
from jobboard.models.notification import Notification  # noqa: F401

from jobboard.core.database import get_db
from jobboard.dependencies.auth import get_current_user
from jobboard.services.applications import ApplicationLifecycleManager
from jobboard.services.jobs import JobPublishingManager, JobSpec


def naive(dt):
    """SQLite drops tzinfo; compare everything as naive UTC."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # Important: because we use an in-memory SQLite DB with StaticPool, the DB
    # persists across tests. Reset schema per test to avoid cross-test coupling.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak global settings (app_config.settings.*). Because that object is
    process-global, we must restore values after each test to avoid cross-test coupling.
    """
    keys = [
        "NOTIFICATIONS_ENABLED",
        "FREE_PLAN_MAX_JOBS",
        "FREE_PLAN_MAX_APPLICATIONS",
        "APPLICATION_VIEW_DEDUP_MINUTES",
        "JWT_SECRET",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def app(db_session):
    app_config.settings.JWT_SECRET = app_config.settings.JWT_SECRET or "test_jwt_secret"

    import jobboard.main as main

    fastapi_app = main.app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


def _user(db, email: str, name: str, role: UserRole) -> User:
    u = User(email=email, name=name, role=role.value, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture()
def owner(db_session):
    return _user(db_session, "owner@acme.test", "Olivia Owner", UserRole.EMPLOYER)


@pytest.fixture()
def hr_user(db_session):
    return _user(db_session, "hr@acme.test", "Harper Recruiter", UserRole.HR)


@pytest.fixture()
def candidate(db_session):
    return _user(db_session, "cand@example.test", "Casey Candidate", UserRole.CANDIDATE)


@pytest.fixture()
def outsider(db_session):
    return _user(db_session, "someone@else.test", "Sam Outsider", UserRole.EMPLOYER)


@pytest.fixture()
def admin_user(db_session):
    return _user(db_session, "admin@jobboard.test", "Ada Admin", UserRole.ADMIN)


@pytest.fixture()
def company(db_session, owner):
    c = Company(name="Acme", owner_id=owner.id)
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture()
def hr_assignment(db_session, company, hr_user):
    row = HRCompanyAssignment(company_id=company.id, hr_user_id=hr_user.id, hr_role="Recruiter", is_active=True)
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture()
def free_plan(db_session):
    plan = SubscriptionPlan(
        name="Free Plan",
        plan_type=PlanType.FREE.value,
        max_jobs=1,
        max_applications=10,
        monthly_price=Decimal("0"),
        yearly_price=Decimal("0"),
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def premium_plan(db_session):
    plan = SubscriptionPlan(
        name="Premium",
        plan_type=PlanType.PREMIUM.value,
        max_jobs=10,
        max_applications=200,
        monthly_price=Decimal("49.00"),
        yearly_price=Decimal("490.00"),
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def job_manager(db_session):
    return JobPublishingManager(db_session)


@pytest.fixture()
def app_manager(db_session):
    return ApplicationLifecycleManager(db_session)


@pytest.fixture()
def published_job(db_session, company, owner, free_plan, job_manager):
    return job_manager.create(company.id, owner.id, JobSpec(title="Backend Engineer", location="Remote"))


@pytest.fixture()
def client_for(app):
    """
    Context manager to create a client authenticated as an arbitrary user.

    Usage:
        with client_for(user) as c:
            ...
    """

    @contextmanager
    def _client_for(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.pop(get_current_user, None)

    return _client_for


@pytest.fixture()
def make_token():
    def _make(email: str, purpose: str = "access", secret: str | None = None) -> str:
        return jwt.encode(
            {"sub": email, "purpose": purpose},
            secret or app_config.settings.JWT_SECRET,
            algorithm=app_config.settings.JWT_ALGORITHM,
        )

    return _make
