from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    company_id: int
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    category_id: Optional[int] = None
    skill_ids: List[int] = []
    tag_ids: List[int] = []
    expires_at: Optional[datetime] = None
    # Jobs go live on creation unless explicitly saved as a draft.
    status: Literal["draft", "published"] = "published"


class NamedOut(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class JobOut(BaseModel):
    id: int
    company_id: int
    posted_by_id: Optional[int] = None
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    status: str
    view_count: int
    application_count: int
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    skills: List[NamedOut] = []
    tags: List[NamedOut] = []

    model_config = ConfigDict(from_attributes=True)
