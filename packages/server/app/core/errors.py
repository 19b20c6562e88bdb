"""
Domain error hierarchy and the JSON error envelope.

Every error renders as ``{"error": {"code", "message", "status"}}``, including
the CSRF rejections returned by the middleware and FastAPI's own request
validation failures, which become a 400 ``VALIDATION_ERROR``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class DomainError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status_code,
            }
        }


class UnauthorizedError(DomainError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class ForbiddenError(DomainError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class CSRFError(ForbiddenError):
    code = "CSRF_VALIDATION_FAILED"
    default_message = "Invalid or missing CSRF token."


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class InvalidCredentialError(DomainError):
    status_code = 400
    code = "INVALID_CREDENTIAL"
    default_message = "Invalid credential"


class ValidationError(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class CannotRemoveOwnerError(DomainError):
    status_code = 400
    code = "CANNOT_REMOVE_OWNER"
    default_message = "The team owner cannot be removed"


class ConflictError(DomainError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------

async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    log.info(
        "request.domain_error",
        path=request.url.path,
        method=request.method,
        code=exc.code,
        status=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def describe_validation_errors(errors) -> str:
    """``field: message`` for each offending field, joined with ``; ``."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
        field = ".".join(loc)
        parts.append(f"{field}: {err['msg']}" if field else err["msg"])
    return "; ".join(parts) or ValidationError.default_message


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a ``ValidationError`` like any other."""
    error = ValidationError(describe_validation_errors(exc.errors()))
    return await domain_error_handler(request, error)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
