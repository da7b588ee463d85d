from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ApplicationEventOut(BaseModel):
    id: int
    application_id: int
    event_type: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    description: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    triggered_by_id: Optional[int] = None
    is_visible_to_job_seeker: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
