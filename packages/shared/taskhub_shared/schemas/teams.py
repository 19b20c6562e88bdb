"""Team, membership, invitation and meeting schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from .common import MeetingStatus, MembershipStatus, TeamRole


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class TeamMembershipRead(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    user_id: uuid.UUID
    role: TeamRole
    status: MembershipStatus
    invited_by: Optional[uuid.UUID] = None
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TeamRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None
    owner_id: uuid.UUID
    members: List[TeamMembershipRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Invitations & membership changes
# ---------------------------------------------------------------------------

class TeamInviteRequest(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.MEMBER


class TeamInviteResponse(BaseModel):
    membership: TeamMembershipRead
    token: str  # single-use; delivered to the invitee out of band


class InviteAcceptRequest(BaseModel):
    token: str = Field(..., min_length=1)


class MembershipUpdateRequest(BaseModel):
    role: TeamRole
    status: MembershipStatus


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------

class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    meet_link: Optional[str] = None

    @model_validator(mode="after")
    def _check_window(self) -> "MeetingCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class MeetingRead(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    created_by: uuid.UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    meet_link: Optional[str] = None
    status: MeetingStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class MeetingNotifyResponse(BaseModel):
    notified: int
