"""
Project API endpoints.

GET    /api/v1/projects                     — Projects visible to the caller
POST   /api/v1/projects                     — Create a project
GET    /api/v1/projects/{projectId}         — Project details
PATCH  /api/v1/projects/{projectId}         — Update (global ADMIN)
DELETE /api/v1/projects/{projectId}         — Delete (global ADMIN)
GET    /api/v1/projects/{projectId}/members — Direct + team members
POST   /api/v1/projects/{projectId}/members — Add a direct member
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import projects as project_service
from taskhub_shared.schemas.projects import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


@router.get("", response_model=list[ProjectRead])
async def list_projects(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    projects = await project_service.list_projects(principal, session)
    return [await project_service.serialize_project(p, session) for p in projects]


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.create_project(body, principal, session)
    return await project_service.serialize_project(project, session)


@router.get("/{projectId}", response_model=ProjectRead)
async def get_project(
    projectId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project(projectId, principal, session)
    return await project_service.serialize_project(project, session)


@router.patch("/{projectId}", response_model=ProjectRead)
async def update_project(
    projectId: uuid.UUID,
    body: ProjectUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.update_project(projectId, body, principal, session)
    return await project_service.serialize_project(project, session)


@router.delete("/{projectId}", status_code=204)
async def delete_project(
    projectId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await project_service.delete_project(projectId, principal, session)


@router.get("/{projectId}/members", response_model=list[ProjectMemberRead])
async def list_members(
    projectId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_members(projectId, principal, session)


@router.post("/{projectId}/members", status_code=201)
async def add_member(
    projectId: uuid.UUID,
    body: ProjectMemberAdd,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    member = await project_service.add_member(projectId, body, principal, session)
    return {"project_id": member.project_id, "user_id": member.user_id}
