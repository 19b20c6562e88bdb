"""
Organization service: CRUD, admin key lifecycle, membership and task stats.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import case, delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, ValidationError
from app.core.security import generate_admin_key, hash_admin_key
from app.models.organization import Organization, OrganizationMember
from app.models.project import Project
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from app.policy.access import Action, Principal, authorize
from app.policy.fanout import MemberAdded
from app.services.context import OrgContext, load_org_with_caller_membership
from app.services.notifications import notify
from app.services.users import get_or_create_placeholder
from taskhub_shared.schemas.common import OrgRole, TaskStatus
from taskhub_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgMemberAddRequest,
    OrgUpdateRequest,
)

log = structlog.get_logger()


async def _authorized_org(
    org_id: uuid.UUID,
    action: Action,
    principal: Principal,
    session: AsyncSession,
    *,
    admin_key: Optional[str] = None,
) -> OrgContext:
    ctx = await load_org_with_caller_membership(session, org_id, principal.user_id)
    authorize(principal, action, ctx.resource if ctx else None, admin_key=admin_key)
    return ctx


async def member_count(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(OrganizationMember).where(
            OrganizationMember.organization_id == org_id
        )
    )
    return result.scalar_one()


async def list_user_orgs(principal: Principal, session: AsyncSession) -> list[dict]:
    """All orgs the caller belongs to, with their role."""
    result = await session.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(OrganizationMember.user_id == principal.user_id)
        .order_by(Organization.name)
    )
    return [{"id": org.id, "name": org.name, "role": role} for org, role in result.all()]


async def create_org(
    req: OrgCreateRequest, principal: Principal, session: AsyncSession
) -> tuple[Organization, str]:
    """Create an org; the creator becomes OWNER. Returns (org, plaintext_admin_key)."""
    admin_key = generate_admin_key()
    org = Organization(
        name=req.name,
        description=req.description,
        admin_key_hash=hash_admin_key(admin_key),
    )
    session.add(org)
    await session.flush()

    session.add(
        OrganizationMember(
            organization_id=org.id,
            user_id=principal.user_id,
            role=OrgRole.OWNER.value,
        )
    )
    await session.flush()

    log.info("org.created", org_id=str(org.id), creator=str(principal.user_id))
    return org, admin_key


async def get_org(org_id: uuid.UUID, principal: Principal, session: AsyncSession) -> Organization:
    ctx = await _authorized_org(org_id, Action.VIEW_ORG, principal, session)
    return ctx.org


async def update_org(
    org_id: uuid.UUID, req: OrgUpdateRequest, principal: Principal, session: AsyncSession
) -> Organization:
    ctx = await _authorized_org(org_id, Action.UPDATE_ORG, principal, session)
    org = ctx.org
    for field_name, value in req.model_dump(exclude_unset=True).items():
        setattr(org, field_name, value)
    org.updated_at = datetime.now(timezone.utc)
    session.add(org)
    await session.flush()

    log.info("org.updated", org_id=str(org.id))
    return org


async def delete_org(
    org_id: uuid.UUID, admin_key: Optional[str], principal: Principal, session: AsyncSession
) -> None:
    """Delete an org. Needs OWNER/ADMIN (or global ADMIN) and the admin key."""
    ctx = await _authorized_org(
        org_id, Action.DELETE_ORG, principal, session, admin_key=admin_key
    )
    # Projects and teams outlive the org; they are detached, not deleted
    await session.execute(
        update(Project).where(Project.organization_id == org_id).values(organization_id=None)
    )
    await session.execute(
        update(Team).where(Team.organization_id == org_id).values(organization_id=None)
    )
    await session.execute(
        delete(OrganizationMember).where(OrganizationMember.organization_id == org_id)
    )
    await session.delete(ctx.org)
    await session.flush()

    log.info("org.deleted", org_id=str(org_id), by=str(principal.user_id))


async def regenerate_admin_key(
    org_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> str:
    ctx = await _authorized_org(org_id, Action.ROTATE_ORG_KEY, principal, session)
    admin_key = generate_admin_key()
    ctx.org.admin_key_hash = hash_admin_key(admin_key)
    ctx.org.updated_at = datetime.now(timezone.utc)
    session.add(ctx.org)
    await session.flush()

    log.info("org.admin_key_rotated", org_id=str(org_id), by=str(principal.user_id))
    return admin_key


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

async def list_members(
    org_id: uuid.UUID, principal: Principal, session: AsyncSession
) -> list[dict]:
    await _authorized_org(org_id, Action.VIEW_ORG, principal, session)
    result = await session.execute(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == org_id)
        .order_by(OrganizationMember.joined_at)
    )
    return [
        {
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, user in result.all()
    ]


async def add_member(
    org_id: uuid.UUID, req: OrgMemberAddRequest, principal: Principal, session: AsyncSession
) -> dict:
    """Invite by email; an unknown address gets a placeholder account."""
    ctx = await _authorized_org(org_id, Action.INVITE_ORG_MEMBER, principal, session)
    if req.role == OrgRole.OWNER:
        raise ValidationError("An organization has exactly one owner")

    user, _created = await get_or_create_placeholder(req.email, session)
    existing = await session.get(
        OrganizationMember, {"organization_id": org_id, "user_id": user.id}
    )
    if existing is not None:
        raise ConflictError("User is already a member of this organization")

    member = OrganizationMember(organization_id=org_id, user_id=user.id, role=req.role.value)
    session.add(member)
    await session.flush()

    log.info("org.member_added", org_id=str(org_id), user_id=str(user.id), role=member.role)
    await notify(
        session,
        MemberAdded(
            kind="org",
            resource_id=org_id,
            resource_name=ctx.org.name,
            new_member_id=user.id,
            actor_name=principal.display_name,
        ),
    )
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "role": member.role,
        "joined_at": member.joined_at,
    }


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

async def task_stats(org_id: uuid.UUID, principal: Principal, session: AsyncSession) -> dict:
    """Task counts across the org's projects."""
    await _authorized_org(org_id, Action.VIEW_ORG, principal, session)
    now = datetime.now(timezone.utc)
    done = TaskStatus.DONE.value
    result = await session.execute(
        select(
            func.count(Task.id),
            func.coalesce(func.sum(case((Task.status == done, 1), else_=0)), 0),
            func.coalesce(
                func.sum(case((Task.status == TaskStatus.IN_PROGRESS.value, 1), else_=0)), 0
            ),
            func.coalesce(
                func.sum(case(((Task.due_date < now) & (Task.status != done), 1), else_=0)), 0
            ),
        )
        .join(Project, Project.id == Task.project_id)
        .where(Project.organization_id == org_id)
    )
    total, completed, in_progress, overdue = result.one()
    return {
        "total": total,
        "completed": completed,
        "in_progress": in_progress,
        "overdue": overdue,
    }
