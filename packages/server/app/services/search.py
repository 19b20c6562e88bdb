"""
Search across tasks, projects and users.

Matching is a case-insensitive substring test. Each result kind is capped
and limited to rows the caller could open directly:

- tasks follow the same visibility as ``GET /tasks``
- projects follow the same visibility as ``GET /projects``
- users are the caller, their teammates and the members of projects they
  can see; global ADMIN/MANAGER see every account
"""

from __future__ import annotations

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.team import Team, TeamMembership
from app.models.user import User
from app.policy.access import Principal, has_global_role
from app.services.projects import accessible_project_ids
from app.services.tasks import visible_tasks_clause
from taskhub_shared.schemas.common import GlobalRole, MembershipStatus

log = structlog.get_logger()

RESULT_LIMIT = 10


def _visible_users_clause(principal: Principal):
    my_teams = select(TeamMembership.team_id).where(
        TeamMembership.user_id == principal.user_id,
        TeamMembership.status == MembershipStatus.ACTIVE.value,
    ).union(select(Team.id).where(Team.owner_id == principal.user_id))
    teammates = select(TeamMembership.user_id).where(
        TeamMembership.team_id.in_(my_teams),
        TeamMembership.status == MembershipStatus.ACTIVE.value,
    )
    owners = select(Team.owner_id).where(Team.id.in_(my_teams))
    project_peers = select(ProjectMember.user_id).where(
        ProjectMember.project_id.in_(accessible_project_ids(principal))
    )
    return or_(
        User.id == principal.user_id,
        User.id.in_(teammates),
        User.id.in_(owners),
        User.id.in_(project_peers),
    )


async def search(
    query: str, principal: Principal, session: AsyncSession, *, limit: int = RESULT_LIMIT
) -> tuple[list[Task], list[Project], list[User]]:
    query = query.strip()
    if not query:
        return [], [], []

    tasks = await session.execute(
        select(Task)
        .where(
            visible_tasks_clause(principal),
            or_(
                Task.title.icontains(query, autoescape=True),
                Task.description.icontains(query, autoescape=True),
            ),
        )
        .order_by(Task.created_at.desc(), Task.id)
        .limit(limit)
    )

    project_stmt = select(Project).where(
        or_(
            Project.name.icontains(query, autoescape=True),
            Project.key.icontains(query, autoescape=True),
            Project.description.icontains(query, autoescape=True),
        )
    )
    if not has_global_role(principal, GlobalRole.MANAGER):
        project_stmt = project_stmt.where(Project.id.in_(accessible_project_ids(principal)))
    projects = await session.execute(project_stmt.order_by(Project.key).limit(limit))

    user_stmt = select(User).where(
        or_(
            User.name.icontains(query, autoescape=True),
            User.email.icontains(query, autoescape=True),
        )
    )
    if not has_global_role(principal, GlobalRole.MANAGER):
        user_stmt = user_stmt.where(_visible_users_clause(principal))
    users = await session.execute(user_stmt.order_by(User.name, User.email).limit(limit))

    found = (
        list(tasks.scalars().all()),
        list(projects.scalars().all()),
        list(users.scalars().all()),
    )
    log.debug("search.done", user_id=str(principal.user_id), hits=[len(rows) for rows in found])
    return found
