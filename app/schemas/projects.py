from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

PROJECT_FIELD_MAP = {
    "title": "title",
    "description": "description",
    "thumbnail": "thumbnail",
    "isArchived": "is_archived",
}


class ProjectCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    thumbnail: Optional[str] = None


class ProjectUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    isArchived: Optional[bool] = None
