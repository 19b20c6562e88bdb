"""
HTTP middleware: request context, CSRF double-submit check and security headers.
"""

from __future__ import annotations

import hmac
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.auth import CSRF_COOKIE, SESSION_COOKIE
from app.core.errors import CSRFError

log = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
CSRF_HEADER = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
# A stale session cookie must not block getting a fresh one
CSRF_EXEMPT_PATHS = frozenset({"/auth/login", "/auth/signup"})

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Content-Security-Policy": (
        "default-src 'none'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "connect-src 'self'; "
        "frame-ancestors 'none'"
    ),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id into structlog context and log one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        started = time.perf_counter()

        response = await call_next(request)

        log.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie check for cookie-authenticated writes.

    Only unsafe methods carrying the session cookie are checked. A request with
    a Bearer Authorization header authenticates by that token, which a browser
    never attaches on its own, so it is let through. Any other scheme falls back
    to the cookie and is checked.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if (
            request.method in SAFE_METHODS
            or request.url.path in CSRF_EXEMPT_PATHS
            or request.headers.get("Authorization", "").startswith("Bearer ")
            or SESSION_COOKIE not in request.cookies
        ):
            return await call_next(request)

        cookie_token = request.cookies.get(CSRF_COOKIE, "")
        header_token = request.headers.get(CSRF_HEADER, "")
        if not cookie_token or not hmac.compare_digest(cookie_token.encode(), header_token.encode()):
            error = CSRFError()
            log.warning("csrf.rejected", path=request.url.path, has_header=bool(header_token))
            return JSONResponse(status_code=error.status_code, content=error.to_body())

        return await call_next(request)
