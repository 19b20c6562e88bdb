"""
Organization API endpoints.

GET    /api/v1/orgs                         — List orgs for the caller
POST   /api/v1/orgs                         — Create an org (caller becomes OWNER)
GET    /api/v1/orgs/{orgId}                 — Org details
PATCH  /api/v1/orgs/{orgId}                 — Update org
DELETE /api/v1/orgs/{orgId}                 — Delete org (X-Admin-Key required)
POST   /api/v1/orgs/{orgId}/regenerate-key  — Rotate the admin key
GET    /api/v1/orgs/{orgId}/members         — List members
POST   /api/v1/orgs/{orgId}/members         — Add a member by email
GET    /api/v1/orgs/{orgId}/task-stats      — Task counts across org projects
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.models.organization import Organization
from app.policy.access import Principal
from app.services import organizations as org_service
from taskhub_shared.schemas.organizations import (
    AdminKeyResponse,
    OrgCreateRequest,
    OrgCreateResponse,
    OrgListResponse,
    OrgMemberAddRequest,
    OrgMemberRead,
    OrgResponse,
    OrgTaskStats,
    OrgUpdateRequest,
)

router = APIRouter()


async def _org_response(org: Organization, session: AsyncSession) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        description=org.description,
        website=org.website,
        timezone=org.timezone,
        member_count=await org_service.member_count(org.id, session),
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


@router.get("", response_model=OrgListResponse)
async def list_orgs(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to."""
    return OrgListResponse(data=await org_service.list_user_orgs(principal, session))


@router.post("", response_model=OrgCreateResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Create an organization. The admin key is only returned here."""
    org, admin_key = await org_service.create_org(body, principal, session)
    return OrgCreateResponse(organization=await _org_response(org, session), admin_key=admin_key)


@router.get("/{orgId}", response_model=OrgResponse)
async def get_org(
    orgId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_org(orgId, principal, session)
    return await _org_response(org, session)


@router.patch("/{orgId}", response_model=OrgResponse)
async def update_org(
    orgId: uuid.UUID,
    body: OrgUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.update_org(orgId, body, principal, session)
    return await _org_response(org, session)


@router.delete("/{orgId}", status_code=204)
async def delete_org(
    orgId: uuid.UUID,
    x_admin_key: Optional[str] = Header(default=None),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Delete an organization. Role authorization and the admin key are both required."""
    await org_service.delete_org(orgId, x_admin_key, principal, session)


@router.post("/{orgId}/regenerate-key", response_model=AdminKeyResponse)
async def regenerate_key(
    orgId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    admin_key = await org_service.regenerate_admin_key(orgId, principal, session)
    return AdminKeyResponse(admin_key=admin_key)


@router.get("/{orgId}/members", response_model=list[OrgMemberRead])
async def list_members(
    orgId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.list_members(orgId, principal, session)


@router.post("/{orgId}/members", response_model=OrgMemberRead, status_code=201)
async def add_member(
    orgId: uuid.UUID,
    body: OrgMemberAddRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.add_member(orgId, body, principal, session)


@router.get("/{orgId}/task-stats", response_model=OrgTaskStats)
async def task_stats(
    orgId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.task_stats(orgId, principal, session)
