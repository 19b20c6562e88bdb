"""
Authentication for TaskHub.

Supports:
- JWT sessions carried in the ``th_session`` cookie or a ``Bearer`` header
- JWT revocation list in Redis
- ``get_principal``: the FastAPI dependency that resolves the caller

The resulting ``Principal`` is passed explicitly into every service and
policy call; nothing reads the caller from ambient state.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import UnauthorizedError
from app.core.redis import get_redis
from app.models.user import User
from app.policy.access import Principal
from taskhub_shared.schemas.common import GlobalRole, UserStatus

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

SESSION_COOKIE = "th_session"
CSRF_COOKIE = "th_csrf"

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def remaining_ttl(payload: dict) -> int:
    """Seconds until the token expires; at least one so Redis accepts it."""
    exp = payload.get("exp")
    if exp is None:
        return settings.jwt_expire_minutes * 60
    return max(int(exp - datetime.now(timezone.utc).timestamp()), 1)


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def principal_from_user(user: User) -> Principal:
    return Principal(
        user_id=user.id,
        global_role=GlobalRole(user.role),
        email=user.email,
        name=user.name,
    )


async def get_principal(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """Resolve the caller. Any failure is a 401 raised before resource access."""
    token = extract_token(request, authorization)
    if not token:
        raise UnauthorizedError("Authentication required")

    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise UnauthorizedError("Session has been revoked")

    user = (await session.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise UnauthorizedError("User not found")
    if user.status != UserStatus.ACTIVE.value:
        log.warning("auth.inactive_user", user_id=str(user.id), status=user.status)
        raise UnauthorizedError("Account is not active")

    principal = principal_from_user(user)
    request.state.principal = principal
    return principal
