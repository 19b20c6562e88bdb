"""
Team and meeting API endpoints.

GET    /api/v1/teams                                   — Teams of the caller
POST   /api/v1/teams                                   — Create a team
GET    /api/v1/teams/{teamId}                          — Team with memberships
PATCH  /api/v1/teams/{teamId}                          — Update team
POST   /api/v1/teams/{teamId}/invite                   — Invite by email
POST   /api/v1/teams/{teamId}/invite/accept            — Accept an invitation token
PUT    /api/v1/teams/{teamId}/memberships/{id}         — Change role/status
DELETE /api/v1/teams/{teamId}/memberships/{id}         — Remove a member
GET    /api/v1/teams/{teamId}/projects                 — Projects owned by the team
GET    /api/v1/teams/{teamId}/tasks                    — Tasks in the team's projects (filters: status, priority)
GET    /api/v1/teams/{teamId}/meetings                 — List meetings
POST   /api/v1/teams/{teamId}/meetings                 — Schedule a meeting
GET    /api/v1/teams/{teamId}/meetings/{meetingId}     — Meeting details
DELETE /api/v1/teams/{teamId}/meetings/{meetingId}     — Cancel a meeting
POST   /api/v1/teams/{teamId}/meetings/{meetingId}/notify — Re-send the invitation
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_principal
from app.core.database import get_session
from app.models.team import Team
from app.policy.access import Principal
from app.services import meetings as meeting_service
from app.services import projects as project_service
from app.services import tasks as task_service
from app.services import teams as team_service
from taskhub_shared.schemas.common import TaskPriority, TaskStatus
from taskhub_shared.schemas.projects import ProjectRead
from taskhub_shared.schemas.tasks import TaskRead
from taskhub_shared.schemas.teams import (
    InviteAcceptRequest,
    MeetingCreate,
    MeetingNotifyResponse,
    MeetingRead,
    MembershipUpdateRequest,
    TeamCreate,
    TeamInviteRequest,
    TeamInviteResponse,
    TeamMembershipRead,
    TeamRead,
    TeamUpdate,
)

router = APIRouter()


async def _team_read(team: Team, session: AsyncSession) -> TeamRead:
    memberships = await team_service.list_memberships(team.id, session)
    return TeamRead(
        id=team.id,
        name=team.name,
        description=team.description,
        organization_id=team.organization_id,
        owner_id=team.owner_id,
        members=[TeamMembershipRead.model_validate(m) for m in memberships],
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@router.get("", response_model=list[TeamRead])
async def list_teams(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    teams = await team_service.list_user_teams(principal, session)
    return [await _team_read(team, session) for team in teams]


@router.post("", response_model=TeamRead, status_code=201)
async def create_team(
    body: TeamCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.create_team(body, principal, session)
    return await _team_read(team, session)


@router.get("/{teamId}", response_model=TeamRead)
async def get_team(
    teamId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.get_team(teamId, principal, session)
    return await _team_read(team, session)


@router.patch("/{teamId}", response_model=TeamRead)
async def update_team(
    teamId: uuid.UUID,
    body: TeamUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    team = await team_service.update_team(teamId, body, principal, session)
    return await _team_read(team, session)


# ---------------------------------------------------------------------------
# Invitations & memberships
# ---------------------------------------------------------------------------

@router.post("/{teamId}/invite", response_model=TeamInviteResponse, status_code=201)
async def invite_member(
    teamId: uuid.UUID,
    body: TeamInviteRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    membership, token = await team_service.invite_member(teamId, body, principal, session)
    return TeamInviteResponse(
        membership=TeamMembershipRead.model_validate(membership),
        token=token,
    )


@router.post("/{teamId}/invite/accept", response_model=TeamMembershipRead)
async def accept_invite(
    teamId: uuid.UUID,
    body: InviteAcceptRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.accept_invite(teamId, body.token, principal, session)


@router.put("/{teamId}/memberships/{membershipId}", response_model=TeamMembershipRead)
async def update_membership(
    teamId: uuid.UUID,
    membershipId: uuid.UUID,
    body: MembershipUpdateRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.update_membership(teamId, membershipId, body, principal, session)


@router.delete("/{teamId}/memberships/{membershipId}", status_code=204)
async def remove_member(
    teamId: uuid.UUID,
    membershipId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await team_service.remove_member(teamId, membershipId, principal, session)


# ---------------------------------------------------------------------------
# Team work
# ---------------------------------------------------------------------------

@router.get("/{teamId}/projects", response_model=list[ProjectRead])
async def list_team_projects(
    teamId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    projects = await project_service.list_team_projects(teamId, principal, session)
    return [await project_service.serialize_project(p, session) for p in projects]


@router.get("/{teamId}/tasks", response_model=list[TaskRead])
async def list_team_tasks(
    teamId: uuid.UUID,
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_team_tasks(
        teamId, principal, session, status=status, priority=priority
    )
    return await task_service.serialize_tasks(tasks, session)


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------

@router.get("/{teamId}/meetings", response_model=list[MeetingRead])
async def list_meetings(
    teamId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await meeting_service.list_meetings(teamId, principal, session)


@router.post("/{teamId}/meetings", response_model=MeetingRead, status_code=201)
async def create_meeting(
    teamId: uuid.UUID,
    body: MeetingCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await meeting_service.create_meeting(teamId, body, principal, session)


@router.get("/{teamId}/meetings/{meetingId}", response_model=MeetingRead)
async def get_meeting(
    teamId: uuid.UUID,
    meetingId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await meeting_service.get_meeting(teamId, meetingId, principal, session)


@router.delete("/{teamId}/meetings/{meetingId}", response_model=MeetingRead)
async def cancel_meeting(
    teamId: uuid.UUID,
    meetingId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await meeting_service.cancel_meeting(teamId, meetingId, principal, session)


@router.post("/{teamId}/meetings/{meetingId}/notify", response_model=MeetingNotifyResponse)
async def notify_meeting(
    teamId: uuid.UUID,
    meetingId: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    notified = await meeting_service.resend_invites(teamId, meetingId, principal, session)
    return MeetingNotifyResponse(notified=notified)
