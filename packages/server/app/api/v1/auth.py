"""
Authentication endpoints.

POST /auth/signup  — Create an account and start a session
POST /auth/login   — Email/password login
POST /auth/logout  — Revoke the current session
GET  /auth/me      — Current user
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    api_key_header,
    create_jwt,
    decode_jwt,
    extract_token,
    get_principal,
    remaining_ttl,
    revoke_jwt,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.security import generate_csrf_token
from app.models.user import User
from app.policy.access import Principal
from app.services import users as user_service
from taskhub_shared.schemas.users import (
    AuthResponse,
    LoginRequest,
    SignupRequest,
    UserResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def _start_session(user: User, response: Response) -> AuthResponse:
    token, _jti = create_jwt(user_id=user.id, role=user.role)
    _set_session_cookies(response, token, generate_csrf_token())
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    body: SignupRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register with email/password and receive a session."""
    user = await user_service.signup(body, session)
    return _start_session(user, response)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await user_service.authenticate(body.email, body.password, session)
    log.info("auth.login_success", user_id=str(user.id))
    return _start_session(user, response)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: str | None = Depends(api_key_header),
):
    """Invalidate the current session."""
    token = extract_token(request, authorization)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # already invalid, only the cookies need clearing
        jti = payload.get("jti")
        if jti:
            await revoke_jwt(jti, remaining_ttl(payload))
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.get_user(principal.user_id, session)
