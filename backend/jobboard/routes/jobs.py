from __future__ import annotations

from fastapi import APIRouter, Depends, status

from jobboard.dependencies.auth import get_current_user
from jobboard.dependencies.services import get_job_manager
from jobboard.models.user import User
from jobboard.schemas.job import JobCreate, JobOut
from jobboard.services.jobs import JobPublishingManager, JobSpec


router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(get_current_user)])


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreate,
    user: User = Depends(get_current_user),
    manager: JobPublishingManager = Depends(get_job_manager),
):
    spec = JobSpec(**payload.model_dump(exclude={"company_id"}))
    return manager.create(payload.company_id, user.id, spec)


@router.get("/{job_id}", response_model=JobOut)
def get_job(
    job_id: int,
    user: User = Depends(get_current_user),
    manager: JobPublishingManager = Depends(get_job_manager),
):
    job = manager.get_for_viewer(job_id, user.id)
    manager.record_job_view(job.id, user.id)
    return job


@router.post("/{job_id}/publish", response_model=JobOut)
def publish_job(
    job_id: int,
    user: User = Depends(get_current_user),
    manager: JobPublishingManager = Depends(get_job_manager),
):
    return manager.publish(job_id, user.id)


@router.post("/{job_id}/close", response_model=JobOut)
def close_job(
    job_id: int,
    user: User = Depends(get_current_user),
    manager: JobPublishingManager = Depends(get_job_manager),
):
    return manager.close(job_id, user.id)
