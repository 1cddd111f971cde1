"""Exception handlers translating domain errors into responses.

Form-driven failures (bad credentials, taken username, provider errors,
missing session) become redirects back to a page; lookups of missing users
and storage failures become JSON errors. Nothing propagates far enough to
take the process down.
"""

import logging
from typing import Union

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..audit import AuditEventType, audit_auth_failure, audit_log
from ..errors import (
    DuplicateUsername,
    InvalidCredentials,
    LoginRequired,
    NotFound,
    StorageUnavailable,
    UpstreamIdentityFailure,
)
from .metrics import track_auth_attempt


logger = logging.getLogger(__name__)


def _debug(request: Request) -> bool:
    context = getattr(request.app.state, "context", None)
    return bool(context and context.settings.DEBUG)


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """
    Handle Pydantic validation errors with detailed error messages.

    Args:
        request: FastAPI request
        exc: Validation error

    Returns:
        JSON response with validation error details
    """
    errors = []

    for error in exc.errors():
        field_path = ".".join(str(x) for x in error["loc"] if x not in ("body", "form"))
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(f"Validation error on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "The request data failed validation",
            "details": errors
        }
    )


async def login_required_handler(request: Request, exc: LoginRequired) -> RedirectResponse:
    """Unauthenticated access to a protected page goes to the login form."""
    audit_log(
        AuditEventType.AUTHZ_LOGIN_REQUIRED,
        {"path": request.url.path},
        actor="anonymous",
        outcome="failure",
        request=request,
    )
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


async def invalid_credentials_handler(request: Request, exc: InvalidCredentials) -> RedirectResponse:
    track_auth_attempt("password", "failure")
    audit_auth_failure(request, "password", "invalid_credentials")
    return RedirectResponse("/login?error=invalid", status_code=status.HTTP_303_SEE_OTHER)


async def duplicate_username_handler(request: Request, exc: DuplicateUsername) -> RedirectResponse:
    logger.info(f"Registration rejected: {exc}")
    track_auth_attempt("register", "failure")
    audit_auth_failure(request, "register", "duplicate_username")
    return RedirectResponse("/register?error=duplicate", status_code=status.HTTP_303_SEE_OTHER)


async def upstream_identity_handler(request: Request, exc: UpstreamIdentityFailure) -> RedirectResponse:
    logger.warning(f"OAuth failure: {exc}")
    track_auth_attempt(exc.provider, "failure")
    audit_auth_failure(request, exc.provider, exc.reason)
    return RedirectResponse(f"/login?error={exc.provider}", status_code=status.HTTP_303_SEE_OTHER)


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    logger.warning(f"{exc} on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not Found", "message": "User not found"}
    )


async def storage_unavailable_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error(f"Storage unavailable on {request.url.path}: {exc}", exc_info=exc.__cause__ is not None)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Storage Unavailable",
            "message": "An error occurred while accessing stored data",
            "details": str(exc.__cause__ or exc) if _debug(request) else None
        }
    )


async def database_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle database errors that escaped the credential store.

    Args:
        request: FastAPI request
        exc: Database error

    Returns:
        JSON response with error message
    """
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)

    if isinstance(exc, IntegrityError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "error": "Database Constraint Violation",
                "message": "The operation violates a database constraint (e.g., duplicate entry)",
            }
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database Error",
            "message": "An error occurred while accessing the database",
            "details": str(exc) if _debug(request) else None
        }
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle all other unhandled exceptions.

    Args:
        request: FastAPI request
        exc: Unhandled exception

    Returns:
        JSON response with error message
    """
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "details": str(exc) if _debug(request) else "Please contact support if this persists"
        }
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LoginRequired, login_required_handler)
    app.add_exception_handler(InvalidCredentials, invalid_credentials_handler)
    app.add_exception_handler(DuplicateUsername, duplicate_username_handler)
    app.add_exception_handler(UpstreamIdentityFailure, upstream_identity_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(StorageUnavailable, storage_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
