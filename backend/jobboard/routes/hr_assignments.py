from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from jobboard.dependencies.auth import get_current_user
from jobboard.dependencies.services import get_access_resolver, get_hr_assignments
from jobboard.models.user import User
from jobboard.schemas.hr_assignment import HRAssignmentCreate, HRAssignmentOut, HRAssignmentUpdate
from jobboard.services.company_access import CompanyAccessResolver
from jobboard.services.hr_assignments import HRAssignmentService


router = APIRouter(prefix="/companies", tags=["hr"], dependencies=[Depends(get_current_user)])


@router.get("/{company_id}/hr", response_model=list[HRAssignmentOut])
def list_hr_team(
    company_id: int,
    user: User = Depends(get_current_user),
    access: CompanyAccessResolver = Depends(get_access_resolver),
    service: HRAssignmentService = Depends(get_hr_assignments),
):
    access.require(user.id, company_id)
    return service.list_for_company(company_id)


@router.post("/{company_id}/hr", response_model=HRAssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_hr(
    company_id: int,
    payload: HRAssignmentCreate,
    user: User = Depends(get_current_user),
    service: HRAssignmentService = Depends(get_hr_assignments),
):
    return service.assign(user.id, company_id, payload.hr_user_id, hr_role=payload.hr_role)


@router.patch("/{company_id}/hr/{hr_user_id}", response_model=HRAssignmentOut)
def update_hr_assignment(
    company_id: int,
    hr_user_id: int,
    payload: HRAssignmentUpdate,
    user: User = Depends(get_current_user),
    service: HRAssignmentService = Depends(get_hr_assignments),
):
    return service.set_active(user.id, company_id, hr_user_id, payload.is_active)


@router.delete("/{company_id}/hr/{hr_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_hr(
    company_id: int,
    hr_user_id: int,
    user: User = Depends(get_current_user),
    service: HRAssignmentService = Depends(get_hr_assignments),
):
    service.remove(user.id, company_id, hr_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
