from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobboard.core.errors import ForbiddenError, NotFoundError
from jobboard.models.company import Company
from jobboard.services.hr_assignments import HRAssignmentService

logger = logging.getLogger(__name__)


class CompanyAccessResolver:
    """
    Answers "which companies may this actor act for": companies they own plus
    companies where they hold an active HR assignment.

    The HR lookup is allowed to fail (e.g. table missing during a migration);
    the resolver then degrades to the owned-only set instead of failing the
    request.
    """

    def __init__(self, db: Session, hr_assignments: HRAssignmentService | None = None):
        self.db = db
        self.hr_assignments = hr_assignments or HRAssignmentService(db)

    def owned_company_ids(self, actor_id: int) -> set[int]:
        rows = self.db.query(Company.id).filter(Company.owner_id == actor_id).all()
        return {r[0] for r in rows}

    def companies_for(self, actor_id: int) -> set[int]:
        owned = self.owned_company_ids(actor_id)
        try:
            # Savepoint so a failed lookup doesn't poison the caller's transaction.
            with self.db.begin_nested():
                via_hr = self.hr_assignments.company_ids_for_hr(actor_id)
        except SQLAlchemyError:
            logger.warning(
                "HR assignment lookup failed for user %s; falling back to owned companies",
                actor_id,
                exc_info=True,
            )
            return owned
        return owned | via_hr

    def can_act_for(self, actor_id: int, company_id: int) -> bool:
        return company_id in self.companies_for(actor_id)

    def require(self, actor_id: int, company_id: int, *, detail: str | None = None) -> None:
        if not self.can_act_for(actor_id, company_id):
            raise ForbiddenError(detail or "You do not have access to this company")

    def team_for(self, company_id: int) -> list[int]:
        """
        Users to notify on the employer side: active HR plus the owner,
        de-duplicated, owner last.
        """
        company = self.db.get(Company, company_id)
        if not company:
            raise NotFoundError("Company not found")

        try:
            with self.db.begin_nested():
                hr_ids = self.hr_assignments.hr_user_ids_for_company(company_id)
        except SQLAlchemyError:
            logger.warning("HR team lookup failed for company %s; owner only", company_id, exc_info=True)
            hr_ids = []

        out: list[int] = []
        for uid in hr_ids + [company.owner_id]:
            if uid in out:
                continue
            out.append(uid)
        return out
