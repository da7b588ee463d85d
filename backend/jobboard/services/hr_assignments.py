from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from jobboard.core.errors import ConflictError, ForbiddenError, NotFoundError
from jobboard.models.company import Company, HRCompanyAssignment
from jobboard.models.user import User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_HR_ROLE = "HR Specialist"


class HRAssignmentService:
    """
    Manages which HR users may act for a company. Only the company owner can
    change the team; lookups only ever return active assignments.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- lookups ---

    def company_ids_for_hr(self, hr_user_id: int) -> set[int]:
        rows = (
            self.db.query(HRCompanyAssignment.company_id)
            .filter(
                HRCompanyAssignment.hr_user_id == hr_user_id,
                HRCompanyAssignment.is_active.is_(True),
            )
            .all()
        )
        return {r[0] for r in rows}

    def hr_user_ids_for_company(self, company_id: int) -> list[int]:
        rows = (
            self.db.query(HRCompanyAssignment.hr_user_id)
            .filter(
                HRCompanyAssignment.company_id == company_id,
                HRCompanyAssignment.is_active.is_(True),
            )
            .order_by(HRCompanyAssignment.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    def list_for_company(self, company_id: int) -> list[HRCompanyAssignment]:
        return (
            self.db.query(HRCompanyAssignment)
            .filter(HRCompanyAssignment.company_id == company_id)
            .order_by(HRCompanyAssignment.id.asc())
            .all()
        )

    # --- owner operations ---

    def _owned_company(self, owner_id: int, company_id: int) -> Company:
        company = self.db.get(Company, company_id)
        if not company:
            raise NotFoundError("Company not found")
        if company.owner_id != owner_id:
            raise ForbiddenError("Only the company owner can manage the HR team")
        return company

    def _get(self, company_id: int, hr_user_id: int) -> HRCompanyAssignment:
        row = (
            self.db.query(HRCompanyAssignment)
            .filter(
                HRCompanyAssignment.company_id == company_id,
                HRCompanyAssignment.hr_user_id == hr_user_id,
            )
            .first()
        )
        if not row:
            raise NotFoundError("HR assignment not found")
        return row

    def assign(
        self,
        owner_id: int,
        company_id: int,
        hr_user_id: int,
        *,
        hr_role: str | None = None,
    ) -> HRCompanyAssignment:
        self._owned_company(owner_id, company_id)

        hr_user = self.db.get(User, hr_user_id)
        if not hr_user:
            raise NotFoundError("HR user not found")
        if hr_user.role != UserRole.HR.value:
            raise ForbiddenError("User must have the HR role to be assigned to a company")

        existing = (
            self.db.query(HRCompanyAssignment)
            .filter(
                HRCompanyAssignment.company_id == company_id,
                HRCompanyAssignment.hr_user_id == hr_user_id,
            )
            .first()
        )
        if existing:
            raise ConflictError("HR user is already assigned to this company")

        row = HRCompanyAssignment(
            company_id=company_id,
            hr_user_id=hr_user_id,
            hr_role=(hr_role or "").strip() or DEFAULT_HR_ROLE,
            is_active=True,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("HR user %s assigned to company %s", hr_user_id, company_id)
        return row

    def set_active(self, owner_id: int, company_id: int, hr_user_id: int, is_active: bool) -> HRCompanyAssignment:
        self._owned_company(owner_id, company_id)
        row = self._get(company_id, hr_user_id)
        row.is_active = bool(is_active)
        self.db.commit()
        self.db.refresh(row)
        logger.info("HR user %s on company %s set active=%s", hr_user_id, company_id, row.is_active)
        return row

    def remove(self, owner_id: int, company_id: int, hr_user_id: int) -> None:
        self._owned_company(owner_id, company_id)
        row = self._get(company_id, hr_user_id)
        self.db.delete(row)
        self.db.commit()
        logger.info("HR user %s removed from company %s", hr_user_id, company_id)
