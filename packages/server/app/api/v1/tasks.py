"""
Task API endpoints, including comments, watching and attachment listing.

GET    /api/v1/tasks                        — Visible tasks (filters: projectId, status, assigneeId)
POST   /api/v1/tasks                        — Create a task
GET    /api/v1/tasks/{taskId}               — Task details
PATCH  /api/v1/tasks/{taskId}               — Update a task
DELETE /api/v1/tasks/{taskId}               — Delete (creator or global ADMIN)
POST   /api/v1/tasks/{taskId}/watch         — Watch
DELETE /api/v1/tasks/{taskId}/watch         — Stop watching
GET    /api/v1/tasks/{taskId}/comments      — List comments
POST   /api/v1/tasks/{taskId}/comments      — Add a comment
GET    /api/v1/tasks/{taskId}/attachments   — List attachments
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.policy.access import Principal
from app.services import attachments as attachment_service
from app.services import comments as comment_service
from app.services import tasks as task_service
from taskhub_shared.schemas.common import TaskStatus
from taskhub_shared.schemas.tasks import (
    AttachmentRead,
    CommentCreate,
    CommentRead,
    TaskCreate,
    TaskRead,
    TaskUpdate,
)

router = APIRouter()


@router.get("", response_model=list[TaskRead])
async def list_tasks(
    project_id: Optional[uuid.UUID] = Query(None, alias="projectId"),
    status: Optional[TaskStatus] = Query(None),
    assignee_id: Optional[uuid.UUID] = Query(None, alias="assigneeId"),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_tasks(
        principal, session, project_id=project_id, status=status, assignee_id=assignee_id
    )
    return await task_service.serialize_tasks(tasks, session)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.create_task(body, principal, session)
    return await task_service.serialize_task(task, session)


@router.get("/{taskId}", response_model=TaskRead)
async def get_task(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.get_task(taskId, principal, session)
    return await task_service.serialize_task(task, session)


@router.patch("/{taskId}", response_model=TaskRead)
async def update_task(
    taskId: uuid.UUID,
    body: TaskUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.update_task(taskId, body, principal, session)
    return await task_service.serialize_task(task, session)


@router.delete("/{taskId}", status_code=204)
async def delete_task(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await task_service.delete_task(taskId, principal, session)


# ---------------------------------------------------------------------------
# Watching
# ---------------------------------------------------------------------------

@router.post("/{taskId}/watch", status_code=204)
async def watch_task(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await task_service.watch_task(taskId, principal, session)


@router.delete("/{taskId}/watch", status_code=204)
async def unwatch_task(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await task_service.unwatch_task(taskId, principal, session)


# ---------------------------------------------------------------------------
# Comments & attachments
# ---------------------------------------------------------------------------

@router.get("/{taskId}/comments", response_model=list[CommentRead])
async def list_comments(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await comment_service.list_comments(taskId, principal, session)


@router.post("/{taskId}/comments", response_model=CommentRead, status_code=201)
async def add_comment(
    taskId: uuid.UUID,
    body: CommentCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await comment_service.add_comment(taskId, body.content, principal, session)


@router.get("/{taskId}/attachments", response_model=list[AttachmentRead])
async def list_attachments(
    taskId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await attachment_service.list_attachments(taskId, principal, session)
