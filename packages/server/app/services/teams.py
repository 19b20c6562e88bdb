"""
Team service: teams, invitations and membership changes.

Removing a member is read-check-write: the target row is re-read right
before the delete and the owner check runs again against that fresh row.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.security import generate_invite_token
from app.models.team import Team, TeamMembership
from app.policy.access import Action, Principal, authorize, has_global_role
from app.policy.fanout import TeamInviteAccepted, TeamInvited, TeamMemberRemoved
from app.services.context import (
    TeamContext,
    load_org_with_caller_membership,
    load_team_membership,
    load_team_with_caller_membership,
)
from app.services.notifications import notify
from app.services.users import get_user_by_email
from taskhub_shared.schemas.common import GlobalRole, MembershipStatus, TeamRole
from taskhub_shared.schemas.teams import (
    MembershipUpdateRequest,
    TeamCreate,
    TeamInviteRequest,
    TeamUpdate,
)

log = structlog.get_logger()


async def authorized_team(
    team_id: uuid.UUID, action: Action, principal: Principal, session: AsyncSession
) -> TeamContext:
    ctx = await load_team_with_caller_membership(session, team_id, principal.user_id)
    authorize(principal, action, ctx.resource() if ctx else None)
    return ctx


async def list_memberships(team_id: uuid.UUID, session: AsyncSession) -> list[TeamMembership]:
    result = await session.execute(
        select(TeamMembership)
        .where(TeamMembership.team_id == team_id)
        .order_by(TeamMembership.invited_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

async def list_user_teams(principal: Principal, session: AsyncSession) -> list[Team]:
    """Teams the caller owns or is an ACTIVE member of; global ADMIN sees all."""
    stmt = select(Team).order_by(Team.name)
    if not has_global_role(principal, GlobalRole.ADMIN):
        member_of = select(TeamMembership.team_id).where(
            TeamMembership.user_id == principal.user_id,
            TeamMembership.status == MembershipStatus.ACTIVE.value,
        )
        stmt = stmt.where(or_(Team.owner_id == principal.user_id, Team.id.in_(member_of)))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_team(req: TeamCreate, principal: Principal, session: AsyncSession) -> Team:
    """Create a team owned by the caller, with an ACTIVE OWNER membership."""
    if req.organization_id is not None:
        org_ctx = await load_org_with_caller_membership(
            session, req.organization_id, principal.user_id
        )
        authorize(principal, Action.VIEW_ORG, org_ctx.resource if org_ctx else None)

    team = Team(
        name=req.name,
        description=req.description,
        organization_id=req.organization_id,
        owner_id=principal.user_id,
    )
    session.add(team)
    await session.flush()

    now = datetime.now(timezone.utc)
    session.add(
        TeamMembership(
            team_id=team.id,
            user_id=principal.user_id,
            role=TeamRole.OWNER.value,
            status=MembershipStatus.ACTIVE.value,
            invited_at=now,
            joined_at=now,
        )
    )
    await session.flush()

    log.info("team.created", team_id=str(team.id), owner=str(principal.user_id))
    return team


async def get_team(team_id: uuid.UUID, principal: Principal, session: AsyncSession) -> Team:
    ctx = await authorized_team(team_id, Action.VIEW_TEAM, principal, session)
    return ctx.team


async def update_team(
    team_id: uuid.UUID, req: TeamUpdate, principal: Principal, session: AsyncSession
) -> Team:
    ctx = await authorized_team(team_id, Action.UPDATE_TEAM, principal, session)
    team = ctx.team
    for field_name, value in req.model_dump(exclude_unset=True).items():
        setattr(team, field_name, value)
    team.updated_at = datetime.now(timezone.utc)
    session.add(team)
    await session.flush()
    log.info("team.updated", team_id=str(team.id))
    return team


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

async def invite_member(
    team_id: uuid.UUID, req: TeamInviteRequest, principal: Principal, session: AsyncSession
) -> tuple[TeamMembership, str]:
    """Create a PENDING membership with a single-use token. Returns (membership, token)."""
    ctx = await authorized_team(team_id, Action.INVITE_TEAM_MEMBER, principal, session)
    if req.role == TeamRole.OWNER:
        raise ValidationError("A team has exactly one owner")

    user = await get_user_by_email(req.email, session)
    if user is None:
        raise NotFoundError("User not found")

    existing = await session.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User is already a member or has a pending invitation")

    token = generate_invite_token()
    membership = TeamMembership(
        team_id=team_id,
        user_id=user.id,
        role=req.role.value,
        status=MembershipStatus.PENDING.value,
        invited_by=principal.user_id,
        token=token,
    )
    session.add(membership)
    await session.flush()

    log.info("team.member_invited", team_id=str(team_id), user_id=str(user.id))
    await notify(
        session,
        TeamInvited(
            team_id=team_id,
            team_name=ctx.team.name,
            invited_user_id=user.id,
            membership_id=membership.id,
            inviter_name=principal.display_name,
            token=token,
        ),
    )
    return membership, token


async def accept_invite(
    team_id: uuid.UUID, token: str, principal: Principal, session: AsyncSession
) -> TeamMembership:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")

    result = await session.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.token == token,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise NotFoundError("Invitation not found")
    if membership.user_id != principal.user_id:
        raise ForbiddenError("This invitation belongs to another user")

    membership.status = MembershipStatus.ACTIVE.value
    membership.token = None
    membership.joined_at = datetime.now(timezone.utc)
    session.add(membership)
    await session.flush()

    admins = await session.execute(
        select(TeamMembership.user_id).where(
            TeamMembership.team_id == team_id,
            TeamMembership.status == MembershipStatus.ACTIVE.value,
            TeamMembership.role.in_([TeamRole.OWNER.value, TeamRole.ADMIN.value]),
        )
    )
    log.info("team.invite_accepted", team_id=str(team_id), user_id=str(principal.user_id))
    await notify(
        session,
        TeamInviteAccepted(
            team_id=team_id,
            team_name=team.name,
            accepting_user_id=principal.user_id,
            accepting_user_name=principal.display_name,
            admin_ids=frozenset(admins.scalars().all()) | {team.owner_id},
        ),
    )
    return membership


# ---------------------------------------------------------------------------
# Membership changes
# ---------------------------------------------------------------------------

async def update_membership(
    team_id: uuid.UUID,
    membership_id: uuid.UUID,
    req: MembershipUpdateRequest,
    principal: Principal,
    session: AsyncSession,
) -> TeamMembership:
    """Change role/status. Concurrent edits are last-write-wins."""
    ctx = await load_team_with_caller_membership(session, team_id, principal.user_id)
    if ctx is None:
        raise NotFoundError("Team not found")
    target = await load_team_membership(session, team_id, membership_id)
    if target is None:
        raise NotFoundError("Membership not found")
    authorize(principal, Action.UPDATE_TEAM_MEMBERSHIP, ctx.resource(target))

    if req.role == TeamRole.OWNER and target.role != TeamRole.OWNER.value:
        raise ValidationError("A team has exactly one owner")
    if target.role == TeamRole.OWNER.value and (
        req.role != TeamRole.OWNER or req.status.value != target.status
    ):
        raise ValidationError("The team owner's membership cannot be changed")

    target.role = req.role.value
    target.status = req.status.value
    if req.status == MembershipStatus.ACTIVE and target.joined_at is None:
        target.joined_at = datetime.now(timezone.utc)
    session.add(target)
    await session.flush()

    log.info(
        "team.membership_updated",
        team_id=str(team_id),
        membership_id=str(membership_id),
        role=target.role,
        status=target.status,
    )
    return target


async def remove_member(
    team_id: uuid.UUID, membership_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> None:
    ctx = await load_team_with_caller_membership(session, team_id, principal.user_id)
    if ctx is None:
        raise NotFoundError("Team not found")
    target = await load_team_membership(session, team_id, membership_id)
    if target is None:
        raise NotFoundError("Membership not found")
    authorize(principal, Action.REMOVE_TEAM_MEMBER, ctx.resource(target))

    # Freshest read before the delete; the owner check must hold against it
    target = await load_team_membership(session, team_id, membership_id, fresh=True)
    if target is None:
        raise NotFoundError("Membership not found")
    authorize(principal, Action.REMOVE_TEAM_MEMBER, ctx.resource(target))

    removed_user_id = target.user_id
    await session.delete(target)
    await session.flush()

    log.info("team.member_removed", team_id=str(team_id), membership_id=str(membership_id))
    await notify(
        session,
        TeamMemberRemoved(
            team_id=team_id,
            team_name=ctx.team.name,
            removed_user_id=removed_user_id,
            actor_id=principal.user_id,
        ),
    )
