from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HRAssignmentCreate(BaseModel):
    hr_user_id: int
    hr_role: Optional[str] = Field(default=None, max_length=50)


class HRAssignmentUpdate(BaseModel):
    is_active: bool


class HRAssignmentOut(BaseModel):
    id: int
    company_id: int
    hr_user_id: int
    hr_role: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
