"""
Project service.

Access to a project comes from direct membership, ACTIVE membership of the
owning team, or a global ADMIN/MANAGER role.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.team import Team, TeamMembership
from app.models.user import User
from app.policy.access import Action, Principal, authorize, has_global_role
from app.policy.fanout import MemberAdded
from app.services.context import (
    ProjectContext,
    load_org_with_caller_membership,
    load_project_with_access_context,
    load_team_with_caller_membership,
)
from app.services.notifications import notify
from app.services.teams import authorized_team
from taskhub_shared.schemas.common import GlobalRole, MembershipStatus
from taskhub_shared.schemas.projects import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectUpdate,
)

log = structlog.get_logger()


async def authorized_project(
    project_id: uuid.UUID, action: Action, principal: Principal, session: AsyncSession
) -> ProjectContext:
    ctx = await load_project_with_access_context(session, project_id, principal.user_id)
    authorize(principal, action, ctx.resource if ctx else None)
    return ctx


def accessible_project_ids(principal: Principal):
    """Subquery of project ids reachable by direct or ACTIVE team membership."""
    direct = select(ProjectMember.project_id).where(ProjectMember.user_id == principal.user_id)
    via_team = (
        select(Project.id)
        .join(Team, Team.id == Project.team_id)
        .where(
            or_(
                Team.owner_id == principal.user_id,
                Team.id.in_(
                    select(TeamMembership.team_id).where(
                        TeamMembership.user_id == principal.user_id,
                        TeamMembership.status == MembershipStatus.ACTIVE.value,
                    )
                ),
            )
        )
    )
    return direct.union(via_team)


async def _assert_key_free(key: str, session: AsyncSession) -> None:
    result = await session.execute(select(Project.id).where(Project.key == key))
    if result.first() is not None:
        raise ConflictError(f"Project key {key} is already in use")


async def _assert_users_exist(user_ids: set[uuid.UUID], session: AsyncSession) -> None:
    if not user_ids:
        return
    result = await session.execute(select(User.id).where(User.id.in_(user_ids)))
    missing = user_ids - set(result.scalars().all())
    if missing:
        raise ValidationError(f"Unknown user ids: {', '.join(sorted(str(m) for m in missing))}")


async def direct_member_ids(project_id: uuid.UUID, session: AsyncSession) -> list[uuid.UUID]:
    result = await session.execute(
        select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
    )
    return list(result.scalars().all())


async def task_count(project_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Task).where(Task.project_id == project_id)
    )
    return result.scalar_one()


async def serialize_project(project: Project, session: AsyncSession) -> dict:
    return {
        "id": project.id,
        "key": project.key,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "organization_id": project.organization_id,
        "team_id": project.team_id,
        "member_ids": await direct_member_ids(project.id, session),
        "task_count": await task_count(project.id, session),
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

async def list_projects(principal: Principal, session: AsyncSession) -> list[Project]:
    stmt = select(Project).order_by(Project.key)
    if not has_global_role(principal, GlobalRole.MANAGER):
        stmt = stmt.where(Project.id.in_(accessible_project_ids(principal)))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_team_projects(
    team_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[Project]:
    await authorized_team(team_id, Action.VIEW_TEAM, principal, session)
    result = await session.execute(
        select(Project).where(Project.team_id == team_id).order_by(Project.key)
    )
    return list(result.scalars().all())


async def create_project(req: ProjectCreate, principal: Principal, session: AsyncSession) -> Project:
    await _assert_key_free(req.key, session)

    if req.organization_id is not None:
        org_ctx = await load_org_with_caller_membership(
            session, req.organization_id, principal.user_id
        )
        authorize(principal, Action.VIEW_ORG, org_ctx.resource if org_ctx else None)
    if req.team_id is not None:
        team_ctx = await load_team_with_caller_membership(session, req.team_id, principal.user_id)
        authorize(principal, Action.VIEW_TEAM, team_ctx.resource() if team_ctx else None)

    member_ids = set(req.member_ids) - {principal.user_id}
    await _assert_users_exist(member_ids, session)

    project = Project(
        key=req.key,
        name=req.name,
        description=req.description,
        organization_id=req.organization_id,
        team_id=req.team_id,
        created_by=principal.user_id,
    )
    session.add(project)
    await session.flush()

    session.add(ProjectMember(project_id=project.id, user_id=principal.user_id))
    for user_id in member_ids:
        session.add(ProjectMember(project_id=project.id, user_id=user_id))
    await session.flush()

    log.info("project.created", project_id=str(project.id), key=project.key)
    for user_id in sorted(member_ids, key=str):
        await notify(
            session,
            MemberAdded(
                kind="project",
                resource_id=project.id,
                resource_name=project.name,
                new_member_id=user_id,
                actor_name=principal.display_name,
            ),
        )
    return project


async def get_project(project_id: uuid.UUID, principal: Principal, session: AsyncSession) -> Project:
    ctx = await authorized_project(project_id, Action.VIEW_PROJECT, principal, session)
    return ctx.project


async def update_project(
    project_id: uuid.UUID, req: ProjectUpdate, principal: Principal, session: AsyncSession
) -> Project:
    ctx = await authorized_project(project_id, Action.UPDATE_PROJECT, principal, session)
    project = ctx.project
    changes = req.model_dump(exclude_unset=True)
    if changes.get("key") and changes["key"] != project.key:
        await _assert_key_free(changes["key"], session)
    for field_name, value in changes.items():
        if value is not None:
            setattr(project, field_name, value)
    project.updated_at = datetime.now(timezone.utc)
    session.add(project)
    await session.flush()
    log.info("project.updated", project_id=str(project.id))
    return project


async def delete_project(project_id: uuid.UUID, principal: Principal, session: AsyncSession) -> None:
    ctx = await authorized_project(project_id, Action.DELETE_PROJECT, principal, session)
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
    await session.delete(ctx.project)
    await session.flush()
    log.info("project.deleted", project_id=str(project_id), by=str(principal.user_id))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(
    project_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[dict]:
    """Direct members unioned with the owning team's ACTIVE members, deduplicated."""
    ctx = await authorized_project(project_id, Action.VIEW_PROJECT, principal, session)
    direct = set(await direct_member_ids(project_id, session))
    via_team: set[uuid.UUID] = set()
    if ctx.project.team_id is not None:
        team = await session.get(Team, ctx.project.team_id)
        if team is not None:
            result = await session.execute(
                select(TeamMembership.user_id).where(
                    TeamMembership.team_id == team.id,
                    TeamMembership.status == MembershipStatus.ACTIVE.value,
                )
            )
            via_team = set(result.scalars().all()) | {team.owner_id}

    everyone = direct | via_team
    if not everyone:
        return []
    result = await session.execute(select(User).where(User.id.in_(everyone)).order_by(User.email))
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "via_team": user.id not in direct,
        }
        for user in result.scalars().all()
    ]


async def add_member(
    project_id: uuid.UUID, req: ProjectMemberAdd, principal: Principal, session: AsyncSession
) -> ProjectMember:
    ctx = await authorized_project(project_id, Action.ADD_PROJECT_MEMBER, principal, session)
    user = await session.get(User, req.user_id)
    if user is None:
        raise NotFoundError("User not found")
    existing = await session.get(ProjectMember, {"project_id": project_id, "user_id": user.id})
    if existing is not None:
        raise ConflictError("User is already a member of this project")

    member = ProjectMember(project_id=project_id, user_id=user.id)
    session.add(member)
    await session.flush()

    log.info("project.member_added", project_id=str(project_id), user_id=str(user.id))
    await notify(
        session,
        MemberAdded(
            kind="project",
            resource_id=project_id,
            resource_name=ctx.project.name,
            new_member_id=user.id,
            actor_name=principal.display_name,
        ),
    )
    return member
