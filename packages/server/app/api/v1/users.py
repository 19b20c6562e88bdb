"""
User endpoints.

GET    /api/v1/users/me      — Own profile
PATCH  /api/v1/users/me      — Update own name
GET    /api/v1/users         — All users (global ADMIN/MANAGER)
PATCH  /api/v1/users/{id}    — Set role/status (global ADMIN)
DELETE /api/v1/users/{id}    — Delete a user (global ADMIN, not self)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import users as user_service
from taskhub_shared.schemas.users import (
    ProfileUpdateRequest,
    UserAdminUpdateRequest,
    UserListResponse,
    UserResponse,
)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.get_user(principal.user_id, session)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.update_profile(body, principal, session)


@router.get("", response_model=UserListResponse)
async def list_users(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.list_users(principal, session)
    return UserListResponse(data=[UserResponse.model_validate(u) for u in users])


@router.patch("/{userId}", response_model=UserResponse)
async def admin_update_user(
    userId: uuid.UUID,
    body: UserAdminUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.admin_update_user(userId, body, principal, session)


@router.delete("/{userId}", status_code=204)
async def delete_user(
    userId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await user_service.delete_user(userId, principal, session)
