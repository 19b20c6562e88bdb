"""
Organization schemas: CRUD, membership, admin key, task statistics.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import OrgRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: Optional[str] = Field(None, max_length=2000)


class OrgUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    website: Optional[str] = Field(None, max_length=255)
    timezone: Optional[str] = Field(None, max_length=64)


class OrgMemberAddRequest(BaseModel):
    """Invite by email; unknown addresses get a placeholder account."""
    email: EmailStr
    role: OrgRole = OrgRole.MEMBER


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    website: Optional[str] = None
    timezone: Optional[str] = None
    member_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgCreateResponse(BaseModel):
    """Returned once on creation; the plaintext admin key is never shown again."""
    organization: OrgResponse
    admin_key: str


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    role: OrgRole  # the requesting user's role in this org


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class OrgMemberRead(BaseModel):
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    role: OrgRole
    joined_at: datetime


class AdminKeyResponse(BaseModel):
    admin_key: str


class OrgTaskStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    overdue: int
