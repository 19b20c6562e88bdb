"""Project-related Pydantic schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    key: str = Field(..., min_length=2, max_length=10, pattern=r"^[A-Za-z][A-Za-z0-9]*$")
    description: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None
    member_ids: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("key")
    @classmethod
    def _upper_key(cls, v: str) -> str:
        return v.upper()


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    key: Optional[str] = Field(None, min_length=2, max_length=10, pattern=r"^[A-Za-z][A-Za-z0-9]*$")
    description: Optional[str] = None
    status: Optional[str] = None

    @field_validator("key")
    @classmethod
    def _upper_key(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class ProjectMemberAdd(BaseModel):
    user_id: uuid.UUID


class ProjectMemberRead(BaseModel):
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    via_team: bool = False


class ProjectRead(BaseModel):
    id: uuid.UUID
    key: str
    name: str
    description: Optional[str] = None
    status: str
    organization_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None
    member_ids: List[uuid.UUID] = Field(default_factory=list)
    task_count: int = 0
    created_at: datetime
    updated_at: datetime
