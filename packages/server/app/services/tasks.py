"""
Task service: CRUD, assignment, watching and tag links.

Every mutation fans out through ``app.policy.fanout``; the actor is never
notified about their own change.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import and_, delete, or_, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ValidationError
from app.models.assignments import TaskAssignee, TaskTag, TaskWatcher
from app.models.base import to_utc
from app.models.comment import Comment
from app.models.project import Project
from app.models.tag import Tag
from app.models.task import Task
from app.models.user import User
from app.policy.access import Action, Principal, authorize, has_global_role
from app.policy.fanout import TaskChanged, TaskCreated, TaskDeleted
from app.services.context import (
    TaskNotificationContext,
    load_project_with_access_context,
    load_task_notification_context,
    task_resource,
)
from app.services.notifications import notify
from app.services.projects import accessible_project_ids
from app.services.teams import authorized_team
from taskhub_shared.schemas.common import GlobalRole, TaskPriority, TaskStatus
from taskhub_shared.schemas.tasks import TaskCreate, TaskUpdate

log = structlog.get_logger()


async def authorized_task(
    task_id: uuid.UUID, action: Action, principal: Principal, session: AsyncSession
) -> TaskNotificationContext:
    ctx = await load_task_notification_context(session, task_id)
    authorize(principal, action, await task_resource(session, ctx, principal.user_id))
    return ctx


async def _assert_users_exist(user_ids: set[uuid.UUID], session: AsyncSession) -> None:
    if not user_ids:
        return
    result = await session.execute(select(User.id).where(User.id.in_(user_ids)))
    missing = user_ids - set(result.scalars().all())
    if missing:
        raise ValidationError("Unknown assignee ids: " + ", ".join(sorted(str(m) for m in missing)))


async def _assert_tags_exist(tag_ids: set[uuid.UUID], session: AsyncSession) -> None:
    if not tag_ids:
        return
    result = await session.execute(select(Tag.id).where(Tag.id.in_(tag_ids)))
    missing = tag_ids - set(result.scalars().all())
    if missing:
        raise ValidationError("Unknown tag ids: " + ", ".join(sorted(str(m) for m in missing)))


async def _links(
    model, column: str, task_ids: list[uuid.UUID], session: AsyncSession
) -> dict[uuid.UUID, list[uuid.UUID]]:
    links: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    if not task_ids:
        return links
    result = await session.execute(
        select(model.task_id, getattr(model, column)).where(model.task_id.in_(task_ids))
    )
    for task_id, other_id in result.all():
        links[task_id].append(other_id)
    return links


async def serialize_tasks(tasks: list[Task], session: AsyncSession) -> list[dict]:
    ids = [task.id for task in tasks]
    assignees = await _links(TaskAssignee, "user_id", ids, session)
    watchers = await _links(TaskWatcher, "user_id", ids, session)
    tags = await _links(TaskTag, "tag_id", ids, session)
    return [
        {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "status": task.status,
            "priority": task.priority,
            "due_date": task.due_date,
            "project_id": task.project_id,
            "creator_id": task.creator_id,
            "assignee_ids": sorted(assignees[task.id], key=str),
            "watcher_ids": sorted(watchers[task.id], key=str),
            "tag_ids": sorted(tags[task.id], key=str),
            "completed_at": task.completed_at,
            "created_at": task.created_at,
            "updated_at": task.updated_at,
        }
        for task in tasks
    ]


async def serialize_task(task: Task, session: AsyncSession) -> dict:
    return (await serialize_tasks([task], session))[0]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def visible_tasks_clause(principal: Principal):
    """WHERE clause limiting tasks to those the caller can see.

    Tasks in a project follow project access; project-less tasks are visible
    to their creator and assignees. Global ADMIN/MANAGER see everything.
    """
    if has_global_role(principal, GlobalRole.MANAGER):
        return true()
    mine = select(TaskAssignee.task_id).where(TaskAssignee.user_id == principal.user_id)
    return or_(
        Task.project_id.in_(accessible_project_ids(principal)),
        and_(
            Task.project_id.is_(None),
            or_(Task.creator_id == principal.user_id, Task.id.in_(mine)),
        ),
    )


async def list_tasks(
    principal: Principal,
    session: AsyncSession,
    *,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    assignee_id: Optional[uuid.UUID] = None,
) -> list[Task]:
    """Tasks the caller can see, optionally filtered."""
    stmt = (
        select(Task)
        .where(visible_tasks_clause(principal))
        .order_by(Task.created_at.desc(), Task.id)
    )
    if project_id is not None:
        stmt = stmt.where(Task.project_id == project_id)
    if status is not None:
        stmt = stmt.where(Task.status == TaskStatus(status).value)
    if assignee_id is not None:
        stmt = stmt.where(
            Task.id.in_(select(TaskAssignee.task_id).where(TaskAssignee.user_id == assignee_id))
        )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_team_tasks(
    team_id: uuid.UUID,
    principal: Principal,
    session: AsyncSession,
    *,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
) -> list[Task]:
    """Tasks in the team's projects; any ACTIVE member may read them."""
    await authorized_team(team_id, Action.VIEW_TEAM, principal, session)
    stmt = (
        select(Task)
        .join(Project, Project.id == Task.project_id)
        .where(Project.team_id == team_id)
        .order_by(Task.created_at.desc(), Task.id)
    )
    if status is not None:
        stmt = stmt.where(Task.status == TaskStatus(status).value)
    if priority is not None:
        stmt = stmt.where(Task.priority == TaskPriority(priority).value)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_task(task_id: uuid.UUID, principal: Principal, session: AsyncSession) -> Task:
    ctx = await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    return ctx.task


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_task(req: TaskCreate, principal: Principal, session: AsyncSession) -> Task:
    if req.project_id is not None:
        project_ctx = await load_project_with_access_context(
            session, req.project_id, principal.user_id
        )
        authorize(principal, Action.VIEW_PROJECT, project_ctx.resource if project_ctx else None)

    assignee_ids = set(req.assignee_ids)
    await _assert_users_exist(assignee_ids, session)
    await _assert_tags_exist(set(req.tag_ids), session)

    task = Task(
        title=req.title,
        description=req.description,
        priority=req.priority.value,
        due_date=to_utc(req.due_date),
        project_id=req.project_id,
        creator_id=principal.user_id,
    )
    session.add(task)
    await session.flush()

    for user_id in assignee_ids:
        session.add(TaskAssignee(task_id=task.id, user_id=user_id))
    for tag_id in set(req.tag_ids):
        session.add(TaskTag(task_id=task.id, tag_id=tag_id))
    await session.flush()

    log.info("task.created", task_id=str(task.id), project_id=str(task.project_id))
    await notify(
        session,
        TaskCreated(
            task_id=task.id,
            task_title=task.title,
            actor_id=principal.user_id,
            actor_name=principal.display_name,
            assignee_ids=frozenset(assignee_ids),
        ),
    )
    return task


async def update_task(
    task_id: uuid.UUID, req: TaskUpdate, principal: Principal, session: AsyncSession
) -> Task:
    ctx = await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    task = ctx.task
    old_status = TaskStatus(task.status)
    changes = req.model_dump(exclude_unset=True)

    for field_name in ("title", "description", "priority"):
        if field_name in changes and changes[field_name] is not None:
            value = changes[field_name]
            setattr(task, field_name, value.value if hasattr(value, "value") else value)
    if "due_date" in changes:
        task.due_date = to_utc(req.due_date)
    if req.status is not None:
        task.status = req.status.value
        if req.status == TaskStatus.DONE and old_status != TaskStatus.DONE:
            task.completed_at = datetime.now(timezone.utc)
        elif req.status != TaskStatus.DONE:
            task.completed_at = None

    assignee_ids = set(ctx.assignee_ids)
    if req.assignee_ids is not None:
        assignee_ids = set(req.assignee_ids)
        await _assert_users_exist(assignee_ids, session)
        await session.execute(delete(TaskAssignee).where(TaskAssignee.task_id == task.id))
        for user_id in assignee_ids:
            session.add(TaskAssignee(task_id=task.id, user_id=user_id))
    if req.tag_ids is not None:
        await _assert_tags_exist(set(req.tag_ids), session)
        await session.execute(delete(TaskTag).where(TaskTag.task_id == task.id))
        for tag_id in set(req.tag_ids):
            session.add(TaskTag(task_id=task.id, tag_id=tag_id))

    task.updated_at = datetime.now(timezone.utc)
    session.add(task)
    await session.flush()

    log.info("task.updated", task_id=str(task.id), status=task.status)
    await notify(
        session,
        TaskChanged(
            task_id=task.id,
            task_title=task.title,
            actor_id=principal.user_id,
            actor_name=principal.display_name,
            creator_id=task.creator_id,
            old_status=old_status,
            new_status=TaskStatus(task.status),
            previous_assignee_ids=ctx.assignee_ids,
            assignee_ids=frozenset(assignee_ids),
            watcher_ids=ctx.watcher_ids,
        ),
    )
    return task


async def delete_task(task_id: uuid.UUID, principal: Principal, session: AsyncSession) -> None:
    """Only the creator or a global ADMIN may delete."""
    ctx = await authorized_task(task_id, Action.DELETE_TASK, principal, session)
    task = ctx.task
    event = TaskDeleted(
        task_id=task.id,
        task_title=task.title,
        actor_id=principal.user_id,
        actor_name=principal.display_name,
        creator_id=task.creator_id,
        assignee_ids=ctx.assignee_ids,
        watcher_ids=ctx.watcher_ids,
    )
    for model in (TaskAssignee, TaskWatcher, TaskTag, Comment):
        await session.execute(delete(model).where(model.task_id == task.id))
    await session.delete(task)
    await session.flush()

    log.info("task.deleted", task_id=str(task_id), by=str(principal.user_id))
    await notify(session, event)


# ---------------------------------------------------------------------------
# Watching
# ---------------------------------------------------------------------------

async def watch_task(task_id: uuid.UUID, principal: Principal, session: AsyncSession) -> None:
    ctx = await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    if principal.user_id in ctx.watcher_ids:
        return
    session.add(TaskWatcher(task_id=task_id, user_id=principal.user_id))
    await session.flush()
    log.info("task.watched", task_id=str(task_id), user_id=str(principal.user_id))


async def unwatch_task(task_id: uuid.UUID, principal: Principal, session: AsyncSession) -> None:
    await authorized_task(task_id, Action.VIEW_TASK, principal, session)
    await session.execute(
        delete(TaskWatcher).where(
            TaskWatcher.task_id == task_id, TaskWatcher.user_id == principal.user_id
        )
    )
    await session.flush()
