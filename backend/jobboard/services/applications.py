from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobboard.core.config import settings
from jobboard.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    QuotaExceededError,
)
from jobboard.core.timeutils import as_utc, utcnow
from jobboard.models.application import Application, ApplicationStatus
from jobboard.models.application_event import ApplicationEvent, ApplicationEventType
from jobboard.models.job import Job, JobStatus
from jobboard.models.job_seeker_profile import JobSeekerProfile
from jobboard.models.user import User
from jobboard.services import notifications as messages
from jobboard.services.application_events import list_application_events, log_application_event
from jobboard.services.company_access import CompanyAccessResolver
from jobboard.services.cv import CVLookup, ProfileCVLookup
from jobboard.services.notifications import NotificationDispatcher
from jobboard.services.subscriptions import SubscriptionGate

logger = logging.getLogger(__name__)

S = ApplicationStatus

# interview_scheduled is only reachable through schedule_interview().
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    S.SUBMITTED.value: frozenset({S.REVIEWING.value, S.REJECTED.value}),
    S.REVIEWING.value: frozenset({S.SHORTLISTED.value, S.REJECTED.value}),
    S.SHORTLISTED.value: frozenset({S.REJECTED.value}),
    S.INTERVIEW_SCHEDULED.value: frozenset({S.ACCEPTED.value, S.REJECTED.value}),
    S.ACCEPTED.value: frozenset(),
    S.REJECTED.value: frozenset(),
    S.WITHDRAWN.value: frozenset(),
}

NOT_WITHDRAWABLE = frozenset({S.ACCEPTED.value, S.REJECTED.value, S.WITHDRAWN.value})


class ApplicationLifecycleManager:
    def __init__(
        self,
        db: Session,
        access: CompanyAccessResolver | None = None,
        gate: SubscriptionGate | None = None,
        notifier: NotificationDispatcher | None = None,
        cv_lookup: CVLookup | None = None,
    ):
        self.db = db
        self.access = access or CompanyAccessResolver(db)
        self.gate = gate or SubscriptionGate(db)
        self.notifier = notifier or NotificationDispatcher(db)
        self.cv_lookup = cv_lookup or ProfileCVLookup(db)

    # --- helpers ---

    def _get(self, application_id: int) -> Application:
        app = self.db.get(Application, application_id)
        if not app:
            raise NotFoundError("Application not found")
        return app

    def _get_for_company(self, application_id: int, actor_id: int) -> Application:
        app = self._get(application_id)
        self.access.require(
            actor_id,
            app.job.company_id,
            detail="You cannot manage applications for this job",
        )
        return app

    def _candidate_user_id(self, app: Application) -> int:
        return app.job_seeker_profile.user_id

    def _applicant_name(self, profile: JobSeekerProfile) -> str:
        user = profile.user
        return profile.full_name or (user.name if user else None) or profile.email or "A candidate"

    def _bump_application_count(self, job_id: int, delta: int) -> None:
        stmt = update(Job).where(Job.id == job_id)
        if delta < 0:
            stmt = stmt.where(Job.application_count > 0)
        self.db.execute(
            stmt.values(application_count=Job.application_count + delta).execution_options(
                synchronize_session=False
            )
        )

    def get_or_create_profile(self, candidate_user_id: int) -> JobSeekerProfile:
        profile = (
            self.db.query(JobSeekerProfile)
            .filter(JobSeekerProfile.user_id == candidate_user_id)
            .first()
        )
        if profile:
            return profile

        user = self.db.get(User, candidate_user_id)
        if not user:
            raise NotFoundError("User not found")

        profile = JobSeekerProfile(user_id=user.id, full_name=user.name, email=user.email)
        self.db.add(profile)
        self.db.flush()
        logger.info("Created job seeker profile %s for user %s", profile.id, user.id)
        return profile

    # --- operations ---

    def submit(self, job_id: int, candidate_user_id: int, cover_letter: str | None = None) -> Application:
        job = self.db.get(Job, job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.status != JobStatus.PUBLISHED.value:
            raise InvalidStateError("Job is not accepting applications")

        profile = self.get_or_create_profile(candidate_user_id)

        existing = (
            self.db.query(Application.id)
            .filter(
                Application.job_id == job.id,
                Application.job_seeker_profile_id == profile.id,
            )
            .first()
        )
        if existing:
            raise ConflictError("You have already applied for this job")

        app = Application(
            job_id=job.id,
            job_seeker_profile_id=profile.id,
            status=S.SUBMITTED.value,
            cover_letter=(cover_letter or "").strip() or None,
            resume_url=self.cv_lookup.primary_cv_url(candidate_user_id),
        )
        self.db.add(app)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already applied for this job")

        log_application_event(
            self.db,
            application_id=app.id,
            event_type=ApplicationEventType.APPLIED,
            actor_id=candidate_user_id,
            description="Application submitted",
            new_status=S.SUBMITTED.value,
        )
        self._bump_application_count(job.id, +1)
        self.db.commit()
        self.db.refresh(app)
        logger.info("Application %s submitted for job %s by user %s", app.id, job.id, candidate_user_id)

        self.notifier.dispatch(
            lambda: messages.application_received(
                self.access.team_for(job.company_id),
                job_title=job.title,
                applicant_name=self._applicant_name(profile),
                application_id=app.id,
            )
        )
        return app

    def get_for_actor(self, application_id: int, actor_id: int) -> Application:
        """Candidates see their own applications, company members their company's; everyone else gets 404."""
        app = self._get(application_id)
        if self._candidate_user_id(app) == actor_id:
            return app
        if self.access.can_act_for(actor_id, app.job.company_id):
            return app
        raise NotFoundError("Application not found")

    def transition(
        self,
        application_id: int,
        actor_id: int,
        target_status: ApplicationStatus | str,
        notes: str | None = None,
    ) -> Application:
        try:
            target = ApplicationStatus(target_status).value
        except ValueError:
            raise InvalidTransitionError(f"Unknown application status: {target_status}")

        app = self._get_for_company(application_id, actor_id)
        old = app.status
        if target not in ALLOWED_TRANSITIONS.get(old, frozenset()):
            raise InvalidTransitionError(f"Cannot move application from {old} to {target}")

        app.status = target
        app.reviewed_by_id = actor_id
        app.reviewed_at = utcnow()
        if notes is not None:
            app.notes = notes.strip() or None

        log_application_event(
            self.db,
            application_id=app.id,
            event_type=ApplicationEventType.STATUS_CHANGED,
            actor_id=actor_id,
            description=f"Status changed from {old} to {target}",
            old_status=old,
            new_status=target,
        )
        self.db.commit()
        self.db.refresh(app)
        logger.info("Application %s moved %s -> %s by user %s", app.id, old, target, actor_id)

        self.notifier.dispatch(
            lambda: messages.application_status_changed(
                self._candidate_user_id(app),
                status=target,
                job_title=app.job.title,
                company_name=app.job.company.name,
                application_id=app.id,
            )
        )
        return app

    def schedule_interview(
        self,
        application_id: int,
        actor_id: int,
        when_utc: datetime,
        notes: str | None = None,
    ) -> Application:
        app = self._get_for_company(application_id, actor_id)
        old = app.status
        if old != S.SHORTLISTED.value:
            raise InvalidTransitionError("Interviews can only be scheduled for shortlisted applications")

        when = as_utc(when_utc)
        app.status = S.INTERVIEW_SCHEDULED.value
        app.interview_scheduled_at = when
        app.interview_notes = (notes or "").strip() or None
        app.reviewed_by_id = actor_id
        app.reviewed_at = utcnow()

        log_application_event(
            self.db,
            application_id=app.id,
            event_type=ApplicationEventType.INTERVIEW_SCHEDULED,
            actor_id=actor_id,
            description=f"Interview scheduled for {when.strftime('%Y-%m-%d %H:%M')} UTC",
            old_status=old,
            new_status=app.status,
            data={"scheduled_at": when.isoformat()},
        )
        self.db.commit()
        self.db.refresh(app)
        logger.info("Interview scheduled for application %s at %s", app.id, when.isoformat())

        self.notifier.dispatch(
            lambda: messages.interview_scheduled(
                self._candidate_user_id(app),
                job_title=app.job.title,
                company_name=app.job.company.name,
                when=when,
                application_id=app.id,
            )
        )
        return app

    def withdraw(self, application_id: int, candidate_user_id: int) -> None:
        app = self._get(application_id)
        if self._candidate_user_id(app) != candidate_user_id:
            raise ForbiddenError("You can only withdraw your own applications")
        if app.status in NOT_WITHDRAWABLE:
            raise InvalidStateError(f"Cannot withdraw an application that is {app.status}")

        old = app.status
        app.status = S.WITHDRAWN.value
        app.withdrawn_at = utcnow()

        log_application_event(
            self.db,
            application_id=app.id,
            event_type=ApplicationEventType.WITHDRAWN,
            actor_id=candidate_user_id,
            description="Application withdrawn by candidate",
            old_status=old,
            new_status=app.status,
        )
        self._bump_application_count(app.job_id, -1)
        self.db.commit()
        logger.info("Application %s withdrawn by user %s", app.id, candidate_user_id)

        self.notifier.dispatch(
            lambda: messages.application_withdrawn(
                self.access.team_for(app.job.company_id),
                job_title=app.job.title,
                applicant_name=self._applicant_name(app.job_seeker_profile),
                application_id=app.id,
            )
        )

    def _viewed_recently(self, application_id: int, viewer_id: int) -> bool:
        window = int(settings.APPLICATION_VIEW_DEDUP_MINUTES)
        if window <= 0:
            return False
        last = (
            self.db.query(ApplicationEvent.created_at)
            .filter(
                ApplicationEvent.application_id == application_id,
                ApplicationEvent.event_type == ApplicationEventType.CV_VIEWED.value,
                ApplicationEvent.triggered_by_id == viewer_id,
            )
            .order_by(ApplicationEvent.id.desc())
            .limit(1)
            .scalar()
        )
        if last is None:
            return False
        return utcnow() - as_utc(last) < timedelta(minutes=window)

    def _viewed_before(self, application_id: int) -> bool:
        row = (
            self.db.query(ApplicationEvent.id)
            .filter(
                ApplicationEvent.application_id == application_id,
                ApplicationEvent.event_type == ApplicationEventType.CV_VIEWED.value,
            )
            .first()
        )
        return row is not None

    def record_view(self, application_id: int, viewer_id: int) -> bool:
        """
        Count a company member opening the application. Returns False when
        nothing was recorded (viewer outside the company, or a repeat view
        inside the dedup window).
        """
        app = self._get(application_id)
        company_id = app.job.company_id
        if not self.access.can_act_for(viewer_id, company_id):
            return False
        if self._viewed_recently(app.id, viewer_id):
            return False

        if not self._viewed_before(app.id):
            decision = self.gate.can_view_application(company_id)
            if not decision.allowed:
                raise QuotaExceededError(decision.reason)
            self.gate.record_application_view(company_id)

        self.db.execute(
            update(Application)
            .where(Application.id == app.id)
            .values(view_count=Application.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        log_application_event(
            self.db,
            application_id=app.id,
            event_type=ApplicationEventType.CV_VIEWED,
            actor_id=viewer_id,
            description="CV viewed by the hiring team",
        )
        self.db.commit()
        self.db.expire(app, ["view_count"])

        self.notifier.dispatch(
            lambda: messages.cv_viewed(
                self._candidate_user_id(app),
                company_name=app.job.company.name,
                application_id=app.id,
            )
        )
        return True

    def history(self, application_id: int, actor_id: int) -> list[ApplicationEvent]:
        app = self._get(application_id)
        if self.access.can_act_for(actor_id, app.job.company_id):
            return list_application_events(self.db, app.id)
        if self._candidate_user_id(app) == actor_id:
            return list_application_events(self.db, app.id, visible_only=True)
        raise NotFoundError("Application not found")
