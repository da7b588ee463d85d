from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from jobboard.models.job_seeker_profile import JobSeekerProfile


class CVLookup(Protocol):
    def primary_cv_url(self, candidate_user_id: int) -> str | None:
        ...


class ProfileCVLookup:
    """Reads the primary CV URL stored on the candidate's profile."""

    def __init__(self, db: Session):
        self.db = db

    def primary_cv_url(self, candidate_user_id: int) -> str | None:
        url = (
            self.db.query(JobSeekerProfile.primary_cv_url)
            .filter(JobSeekerProfile.user_id == candidate_user_id)
            .scalar()
        )
        if isinstance(url, str) and url.strip():
            return url.strip()
        return None
