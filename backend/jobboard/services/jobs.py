from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from jobboard.core.errors import InvalidStateError, NotFoundError, QuotaExceededError
from jobboard.core.timeutils import as_utc, utcnow
from jobboard.models.application import Application, ApplicationStatus
from jobboard.models.company import Company
from jobboard.models.job import Job, JobCategory, JobStatus, JobTag, JobView, Skill
from jobboard.services import notifications as messages
from jobboard.services.company_access import CompanyAccessResolver
from jobboard.services.notifications import NotificationDispatcher
from jobboard.services.subscriptions import SubscriptionGate

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = frozenset({JobStatus.DRAFT.value, JobStatus.PUBLISHED.value})


@dataclass
class JobSpec:
    title: str
    description: str | None = None
    location: str | None = None
    category_id: int | None = None
    skill_ids: list[int] = field(default_factory=list)
    tag_ids: list[int] = field(default_factory=list)
    expires_at: datetime | None = None
    status: str = JobStatus.PUBLISHED.value


def normalize_ids(raw) -> list[int]:
    if not raw or not isinstance(raw, (list, tuple, set)):
        return []
    seen: set[int] = set()
    out: list[int] = []
    for v in raw:
        try:
            i = int(v)
        except (TypeError, ValueError):
            continue
        if i <= 0 or i in seen:
            continue
        seen.add(i)
        out.append(i)
    return out[:50]


class JobPublishingManager:
    def __init__(
        self,
        db: Session,
        access: CompanyAccessResolver | None = None,
        gate: SubscriptionGate | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        self.db = db
        self.access = access or CompanyAccessResolver(db)
        self.gate = gate or SubscriptionGate(db)
        self.notifier = notifier or NotificationDispatcher(db)

    def _get(self, job_id: int) -> Job:
        job = self.db.get(Job, job_id)
        if not job:
            raise NotFoundError("Job not found")
        return job

    def _get_for_company(self, job_id: int, actor_id: int) -> Job:
        job = self._get(job_id)
        self.access.require(actor_id, job.company_id, detail="You cannot manage jobs for this company")
        return job

    def _require_quota(self, company_id: int) -> None:
        decision = self.gate.can_publish(company_id)
        if not decision.allowed:
            raise QuotaExceededError(decision.reason)

    def _record_publish(self, company_id: int) -> None:
        try:
            self.gate.record_publish(company_id)
        except QuotaExceededError:
            self.db.rollback()
            raise

    def create(self, company_id: int, actor_id: int, spec: JobSpec) -> Job:
        if not self.db.get(Company, company_id):
            raise NotFoundError("Company not found")
        self.access.require(actor_id, company_id, detail="You cannot post jobs for this company")

        status = (spec.status or JobStatus.PUBLISHED.value).strip().lower()
        if status not in CREATABLE_STATUSES:
            raise InvalidStateError("Jobs can only be created as draft or published")

        if spec.category_id is not None and not self.db.get(JobCategory, spec.category_id):
            raise NotFoundError("Job category not found")

        publishing = status == JobStatus.PUBLISHED.value
        if publishing:
            self._require_quota(company_id)

        job = Job(
            company_id=company_id,
            posted_by_id=actor_id,
            category_id=spec.category_id,
            title=spec.title.strip(),
            description=spec.description,
            location=(spec.location or "").strip() or None,
            status=status,
            expires_at=as_utc(spec.expires_at) if spec.expires_at else None,
        )

        skill_ids = normalize_ids(spec.skill_ids)
        if skill_ids:
            job.skills = self.db.query(Skill).filter(Skill.id.in_(skill_ids)).all()
        tag_ids = normalize_ids(spec.tag_ids)
        if tag_ids:
            job.tags = self.db.query(JobTag).filter(JobTag.id.in_(tag_ids)).all()

        self.db.add(job)
        self.db.flush()

        if publishing:
            job.published_at = utcnow()
            self._record_publish(company_id)

        self.db.commit()
        self.db.refresh(job)
        logger.info("Job %s created for company %s as %s by user %s", job.id, company_id, status, actor_id)
        return job

    def publish(self, job_id: int, actor_id: int) -> Job:
        job = self._get_for_company(job_id, actor_id)
        if job.status != JobStatus.DRAFT.value:
            raise InvalidStateError("Only draft jobs can be published")

        self._require_quota(job.company_id)

        job.status = JobStatus.PUBLISHED.value
        job.published_at = utcnow()
        self.db.flush()
        self._record_publish(job.company_id)

        self.db.commit()
        self.db.refresh(job)
        logger.info("Job %s published by user %s", job.id, actor_id)
        return job

    def close(self, job_id: int, actor_id: int) -> Job:
        job = self._get_for_company(job_id, actor_id)
        if job.status != JobStatus.PUBLISHED.value:
            raise InvalidStateError("Only published jobs can be closed")

        job.status = JobStatus.CLOSED.value
        self.db.commit()
        self.db.refresh(job)
        logger.info("Job %s closed by user %s", job.id, actor_id)
        return job

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Flip every published job past its expiry date to expired."""
        cutoff = as_utc(now) if now else utcnow()
        rows = (
            self.db.query(Job.id, Job.title, Company.owner_id)
            .join(Company, Company.id == Job.company_id)
            .filter(
                Job.status == JobStatus.PUBLISHED.value,
                Job.expires_at.isnot(None),
                Job.expires_at < cutoff,
            )
            .all()
        )
        if not rows:
            return 0

        self.db.execute(
            update(Job)
            .where(
                Job.id.in_([r[0] for r in rows]),
                Job.status == JobStatus.PUBLISHED.value,
            )
            .values(status=JobStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.info("Expired %s job(s)", len(rows))

        for job_id, title, owner_id in rows:
            self.notifier.dispatch(messages.job_expired(owner_id, job_title=title, job_id=job_id))
        return len(rows)

    def get_for_viewer(self, job_id: int, viewer_id: int | None = None) -> Job:
        job = self._get(job_id)
        if job.status == JobStatus.PUBLISHED.value:
            return job
        if viewer_id is not None and self.access.can_act_for(viewer_id, job.company_id):
            return job
        raise NotFoundError("Job not found")

    def record_job_view(self, job_id: int, viewer_id: int | None = None) -> bool:
        job = self._get(job_id)
        if viewer_id is not None and self.access.can_act_for(viewer_id, job.company_id):
            return False

        self.db.execute(
            update(Job)
            .where(Job.id == job.id)
            .values(view_count=Job.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.add(JobView(job_id=job.id, user_id=viewer_id))
        self.db.commit()
        return True

    def reconcile_application_count(self, job_id: int) -> int:
        job = self._get(job_id)
        live = (
            self.db.query(func.count(Application.id))
            .filter(
                Application.job_id == job.id,
                Application.status != ApplicationStatus.WITHDRAWN.value,
            )
            .scalar()
        )
        live = int(live or 0)
        if job.application_count != live:
            logger.warning(
                "Job %s application_count drifted: stored=%s live=%s",
                job.id,
                job.application_count,
                live,
            )
            job.application_count = live
            self.db.commit()
        return live

    def reconcile_all(self) -> int:
        """Returns how many jobs needed a correction."""
        fixed = 0
        for (job_id,) in self.db.query(Job.id).order_by(Job.id.asc()).all():
            before = self.db.query(Job.application_count).filter(Job.id == job_id).scalar()
            if self.reconcile_application_count(job_id) != before:
                fixed += 1
        return fixed
