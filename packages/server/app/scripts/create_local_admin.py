"""
Script to create (or promote) a global ADMIN account for local testing.

    python -m app.scripts.create_local_admin admin@example.com s3cretpass --name "Admin"
"""

import argparse
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_context
from app.core.logging import configure_logging
from app.core.security import hash_password
from app.models.user import User
from app.services.users import get_user_by_email, normalize_email
from taskhub_shared.schemas.common import GlobalRole, UserStatus

log = structlog.get_logger()


async def ensure_admin(session: AsyncSession, email: str, password: str, name: str = "Admin") -> User:
    """Create the account if missing; always leave it ACTIVE, ADMIN, with this password."""
    user = await get_user_by_email(email, session)
    if user is None:
        user = User(email=normalize_email(email), name=name)
        session.add(user)
    user.password_hash = hash_password(password)
    user.role = GlobalRole.ADMIN.value
    user.status = UserStatus.ACTIVE.value
    await session.flush()
    log.info("admin.ensured", user_id=str(user.id))
    return user


async def main(email: str, password: str, name: str) -> None:
    async with get_session_context() as session:
        await ensure_admin(session, email, password, name)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local TaskHub admin user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--name", default="Admin")
    args = parser.parse_args()
    configure_logging("info", "text")
    asyncio.run(main(args.email, args.password, args.name))
