from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from jobboard.dependencies.auth import get_current_user
from jobboard.dependencies.services import get_application_manager
from jobboard.models.user import User
from jobboard.schemas.application import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationStatusUpdate,
    ApplicationViewOut,
    InterviewScheduleIn,
)
from jobboard.schemas.application_event import ApplicationEventOut
from jobboard.services.applications import ApplicationLifecycleManager


router = APIRouter(prefix="/applications", tags=["applications"], dependencies=[Depends(get_current_user)])


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
def submit_application(
    payload: ApplicationCreate,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return manager.submit(payload.job_id, user.id, payload.cover_letter)


@router.get("/{application_id}", response_model=ApplicationOut)
def get_application(
    application_id: int,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return manager.get_for_actor(application_id, user.id)


@router.post("/{application_id}/status", response_model=ApplicationOut)
def update_application_status(
    application_id: int,
    payload: ApplicationStatusUpdate,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return manager.transition(application_id, user.id, payload.status.strip().lower(), payload.notes)


@router.post("/{application_id}/interview", response_model=ApplicationOut)
def schedule_interview(
    application_id: int,
    payload: InterviewScheduleIn,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return manager.schedule_interview(application_id, user.id, payload.scheduled_at, payload.notes)


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def withdraw_application(
    application_id: int,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    manager.withdraw(application_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{application_id}/view", response_model=ApplicationViewOut)
def record_application_view(
    application_id: int,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return {"recorded": manager.record_view(application_id, user.id)}


@router.get("/{application_id}/events", response_model=list[ApplicationEventOut])
def list_application_events(
    application_id: int,
    user: User = Depends(get_current_user),
    manager: ApplicationLifecycleManager = Depends(get_application_manager),
):
    return manager.history(application_id, user.id)
