"""User account schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import GlobalRole, UserStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class UserAdminUpdateRequest(BaseModel):
    """Global ADMIN changes to another account."""
    role: Optional[GlobalRole] = None
    status: Optional[UserStatus] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    id: UUID4
    email: str
    name: Optional[str] = None
    role: GlobalRole
    status: UserStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    data: List[UserResponse]


class AuthResponse(BaseModel):
    user: UserResponse
    token: str  # also set as the session cookie
