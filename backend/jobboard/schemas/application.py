from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApplicationCreate(BaseModel):
    job_id: int
    cover_letter: Optional[str] = Field(default=None, max_length=10000)


class ApplicationStatusUpdate(BaseModel):
    status: str = Field(min_length=1, max_length=30)
    notes: Optional[str] = Field(default=None, max_length=5000)


class InterviewScheduleIn(BaseModel):
    scheduled_at: datetime
    notes: Optional[str] = Field(default=None, max_length=5000)


class ApplicationOut(BaseModel):
    id: int
    job_id: int
    job_seeker_profile_id: int
    status: str
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None
    notes: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    interview_scheduled_at: Optional[datetime] = None
    interview_notes: Optional[str] = None
    view_count: int
    withdrawn_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApplicationViewOut(BaseModel):
    recorded: bool
