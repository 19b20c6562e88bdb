"""
User service: signup, login, profile and global administration.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.core.security import hash_password, verify_password
from app.models.assignments import TaskAssignee, TaskWatcher
from app.models.notification import Notification
from app.models.organization import OrganizationMember
from app.models.project import ProjectMember
from app.models.team import TeamMembership
from app.models.user import User
from app.policy.access import Principal, require_global_role
from taskhub_shared.schemas.common import GlobalRole, UserStatus
from taskhub_shared.schemas.users import (
    ProfileUpdateRequest,
    SignupRequest,
    UserAdminUpdateRequest,
)

log = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(
        select(User).where(func.lower(User.email) == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_or_create_placeholder(email: str, session: AsyncSession) -> tuple[User, bool]:
    """Find a user by email, creating a passwordless account for invites. Returns (user, created)."""
    user = await get_user_by_email(email, session)
    if user is not None:
        return user, False
    address = normalize_email(email)
    user = User(email=address, name=address.split("@", 1)[0])
    session.add(user)
    await session.flush()
    log.info("user.placeholder_created", user_id=str(user.id))
    return user, True


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------

async def signup(req: SignupRequest, session: AsyncSession) -> User:
    """Create an account. An invited placeholder (no password yet) is claimed instead."""
    user = await get_user_by_email(req.email, session)
    if user is not None and user.password_hash:
        raise ConflictError("Email already registered")

    if user is None:
        user = User(email=normalize_email(req.email))
        session.add(user)
    user.name = req.name
    user.password_hash = hash_password(req.password)
    await session.flush()

    log.info("user.signed_up", user_id=str(user.id))
    return user


async def authenticate(email: str, password: str, session: AsyncSession) -> User:
    user = await get_user_by_email(email, session)
    if user is None or not user.password_hash:
        raise UnauthorizedError("Invalid email or password")
    if not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", user_id=str(user.id), reason="bad_password")
        raise UnauthorizedError("Invalid email or password")
    if user.status != UserStatus.ACTIVE.value:
        log.warning("auth.login_failure", user_id=str(user.id), reason="inactive")
        raise UnauthorizedError("Account is not active")
    return user


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_profile(
    req: ProfileUpdateRequest, principal: Principal, session: AsyncSession
) -> User:
    user = await get_user(principal.user_id, session)
    if req.name is not None:
        user.name = req.name
    session.add(user)
    await session.flush()
    return user


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

async def list_users(principal: Principal, session: AsyncSession) -> list[User]:
    require_global_role(principal, GlobalRole.MANAGER)
    result = await session.execute(select(User).order_by(User.email))
    return list(result.scalars().all())


async def admin_update_user(
    user_id: uuid.UUID,
    req: UserAdminUpdateRequest,
    principal: Principal,
    session: AsyncSession,
) -> User:
    require_global_role(principal, GlobalRole.ADMIN)
    user = await get_user(user_id, session)
    if req.role is not None:
        user.role = req.role.value
    if req.status is not None:
        user.status = req.status.value
    session.add(user)
    await session.flush()
    log.info("user.admin_updated", user_id=str(user.id), role=user.role, status=user.status)
    return user


async def delete_user(user_id: uuid.UUID, principal: Principal, session: AsyncSession) -> None:
    require_global_role(principal, GlobalRole.ADMIN)
    if user_id == principal.user_id:
        raise ValidationError("You cannot delete your own account")
    user = await get_user(user_id, session)

    for model in (OrganizationMember, TeamMembership, ProjectMember, TaskAssignee, TaskWatcher, Notification):
        await session.execute(delete(model).where(model.user_id == user_id))
    await session.delete(user)
    try:
        await session.flush()
    except IntegrityError:
        # Tasks, comments or teams still point at this user
        raise ConflictError("User is still referenced and cannot be deleted")
    log.info("user.deleted", user_id=str(user_id), by=str(principal.user_id))
