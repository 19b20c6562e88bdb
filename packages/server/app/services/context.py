"""
Data-access contract for the policy layer.

Each loader returns the entity together with the caller's own membership
facts, or ``None`` when the entity does not exist. ``None`` flows straight
into ``can_perform`` which turns it into NotFound. Nothing here is cached:
every decision re-reads current state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.assignments import TaskAssignee, TaskWatcher
from app.models.attachment import Attachment
from app.models.comment import Comment
from app.models.organization import Organization, OrganizationMember
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.team import Team, TeamMembership
from app.policy.access import (
    AttachmentResource,
    OrgResource,
    ProjectResource,
    TaskResource,
    TeamResource,
)
from taskhub_shared.schemas.common import MembershipStatus, OrgRole, TeamRole


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@dataclass
class OrgContext:
    org: Organization
    membership: Optional[OrganizationMember]

    @property
    def resource(self) -> OrgResource:
        return OrgResource(
            org_id=self.org.id,
            admin_key_hash=self.org.admin_key_hash,
            caller_role=OrgRole(self.membership.role) if self.membership else None,
        )


async def load_org_with_caller_membership(
    session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[OrgContext]:
    org = await session.get(Organization, org_id)
    if org is None:
        return None
    membership = await session.get(
        OrganizationMember, {"organization_id": org_id, "user_id": user_id}
    )
    return OrgContext(org=org, membership=membership)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@dataclass
class TeamContext:
    team: Team
    membership: Optional[TeamMembership]

    def resource(self, target: Optional[TeamMembership] = None) -> TeamResource:
        return TeamResource(
            team_id=self.team.id,
            owner_id=self.team.owner_id,
            caller_role=TeamRole(self.membership.role) if self.membership else None,
            caller_status=MembershipStatus(self.membership.status) if self.membership else None,
            target_role=TeamRole(target.role) if target is not None else None,
        )


async def load_team_with_caller_membership(
    session: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[TeamContext]:
    team = await session.get(Team, team_id)
    if team is None:
        return None
    result = await session.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
        )
    )
    return TeamContext(team=team, membership=result.scalar_one_or_none())


async def load_team_membership(
    session: AsyncSession, team_id: uuid.UUID, membership_id: uuid.UUID, *, fresh: bool = False
) -> Optional[TeamMembership]:
    """Load one membership row of a team; ``fresh`` bypasses the identity map."""
    stmt = select(TeamMembership).where(
        TeamMembership.id == membership_id,
        TeamMembership.team_id == team_id,
    )
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def active_team_member_ids(session: AsyncSession, team: Team) -> set[uuid.UUID]:
    """ACTIVE members of a team; the owner always counts as one."""
    result = await session.execute(
        select(TeamMembership.user_id).where(
            TeamMembership.team_id == team.id,
            TeamMembership.status == MembershipStatus.ACTIVE.value,
        )
    )
    return set(result.scalars().all()) | {team.owner_id}


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@dataclass
class ProjectContext:
    project: Project
    is_direct_member: bool
    is_team_member: bool

    @property
    def resource(self) -> ProjectResource:
        return ProjectResource(
            project_id=self.project.id,
            is_direct_member=self.is_direct_member,
            is_team_member=self.is_team_member,
        )


async def _project_access_flags(
    session: AsyncSession, project: Project, user_id: uuid.UUID
) -> tuple[bool, bool]:
    direct = (
        await session.get(ProjectMember, {"project_id": project.id, "user_id": user_id})
        is not None
    )
    via_team = False
    if project.team_id is not None:
        team = await session.get(Team, project.team_id)
        if team is not None and team.owner_id == user_id:
            via_team = True
        else:
            result = await session.execute(
                select(TeamMembership.id).where(
                    TeamMembership.team_id == project.team_id,
                    TeamMembership.user_id == user_id,
                    TeamMembership.status == MembershipStatus.ACTIVE.value,
                )
            )
            via_team = result.first() is not None
    return direct, via_team


async def load_project_with_access_context(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[ProjectContext]:
    project = await session.get(Project, project_id)
    if project is None:
        return None
    direct, via_team = await _project_access_flags(session, project, user_id)
    return ProjectContext(project=project, is_direct_member=direct, is_team_member=via_team)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

@dataclass
class TaskNotificationContext:
    task: Task
    assignee_ids: frozenset = field(default_factory=frozenset)
    watcher_ids: frozenset = field(default_factory=frozenset)
    prior_commenter_ids: frozenset = field(default_factory=frozenset)


async def load_task_notification_context(
    session: AsyncSession, task_id: uuid.UUID
) -> Optional[TaskNotificationContext]:
    task = await session.get(Task, task_id)
    if task is None:
        return None
    assignees = await session.execute(
        select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
    )
    watchers = await session.execute(
        select(TaskWatcher.user_id).where(TaskWatcher.task_id == task_id)
    )
    commenters = await session.execute(
        select(Comment.author_id).where(Comment.task_id == task_id).distinct()
    )
    return TaskNotificationContext(
        task=task,
        assignee_ids=frozenset(assignees.scalars().all()),
        watcher_ids=frozenset(watchers.scalars().all()),
        prior_commenter_ids=frozenset(commenters.scalars().all()),
    )


async def task_resource(
    session: AsyncSession, ctx: Optional[TaskNotificationContext], user_id: uuid.UUID
) -> Optional[TaskResource]:
    """Resource view of a task for one caller, reached through its project if any."""
    if ctx is None:
        return None
    project = None
    if ctx.task.project_id is not None:
        project_ctx = await load_project_with_access_context(session, ctx.task.project_id, user_id)
        if project_ctx is not None:
            project = project_ctx.resource
    return TaskResource(
        task_id=ctx.task.id,
        creator_id=ctx.task.creator_id,
        assignee_ids=ctx.assignee_ids,
        project=project,
    )


async def load_attachment_resource(
    session: AsyncSession, attachment_id: uuid.UUID
) -> tuple[Optional[Attachment], Optional[AttachmentResource]]:
    attachment = await session.get(Attachment, attachment_id)
    if attachment is None:
        return None, None
    ctx = await load_task_notification_context(session, attachment.task_id)
    if ctx is None:
        return attachment, None
    return attachment, AttachmentResource(
        attachment_id=attachment.id,
        task_creator_id=ctx.task.creator_id,
        assignee_ids=ctx.assignee_ids,
    )
