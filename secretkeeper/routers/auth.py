"""Local registration, login and logout."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import ORJSONResponse, RedirectResponse

from ..audit import AuditEventType, audit_auth_success, audit_log
from ..auth import session_token_from_request
from ..auth_providers.session import create_session, destroy_session
from ..context import AppContext, get_context
from ..identity import IdentityResolver, LocalCredentials, get_resolver
from ..middleware.metrics import track_auth_attempt
from ..models import PASSWORD_MIN_LENGTH, USERNAME_MAX_LENGTH, FormPage, ProviderInfo


logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


def provider_listing(context: AppContext) -> list[ProviderInfo]:
    """Login options shown on the home, login and register pages."""
    listing = []
    for name, provider in context.providers.items():
        listing.append(ProviderInfo(
            name=name,
            display_name=provider.display_name,
            type="oauth" if provider.requires_redirect() else "credentials",
            login_url=f"/auth/{name}" if provider.requires_redirect() else "/login",
        ))
    return listing


async def throttle(request: Request, context: AppContext = Depends(get_context)) -> None:
    """Per-IP limit on credential submissions."""
    try:
        await context.rate_limiter.check(request)
    except HTTPException:
        audit_log(
            AuditEventType.SECURITY_RATE_LIMITED,
            {"path": request.url.path},
            actor="anonymous",
            outcome="failure",
            request=request,
        )
        raise


@router.get("/register", response_model=FormPage, response_class=ORJSONResponse)
async def register_page(
    error: Optional[str] = None,
    context: AppContext = Depends(get_context),
):
    return FormPage(
        page="register",
        action="/register",
        fields=["username", "password"],
        error=error,
        providers=provider_listing(context),
    )


@router.post("/register", dependencies=[Depends(throttle)])
async def register(
    request: Request,
    username: str = Form(..., max_length=USERNAME_MAX_LENGTH, pattern=r"\S"),
    password: str = Form(..., min_length=PASSWORD_MIN_LENGTH),
    resolver: IdentityResolver = Depends(get_resolver),
    context: AppContext = Depends(get_context),
):
    """Register a local account and log it in.

    A taken username raises DuplicateUsername, which redirects back to
    /register?error=duplicate.
    """
    user = await resolver.register(LocalCredentials(username=username, password=password))

    response = RedirectResponse("/secrets", status_code=status.HTTP_303_SEE_OTHER)
    await create_session(
        context.sessions, user.id, response, previous=session_token_from_request(request, context)
    )

    track_auth_attempt("register", "success")
    audit_auth_success(request, user.id, "password", registered=True)
    return response


@router.get("/login", response_model=FormPage, response_class=ORJSONResponse)
async def login_page(
    error: Optional[str] = None,
    context: AppContext = Depends(get_context),
):
    return FormPage(
        page="login",
        action="/login",
        fields=["username", "password"],
        error=error,
        providers=provider_listing(context),
    )


@router.post("/login", dependencies=[Depends(throttle)])
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    resolver: IdentityResolver = Depends(get_resolver),
    context: AppContext = Depends(get_context),
):
    """Verify the password and start a session.

    The hash is always checked before a session exists; a failed check
    raises InvalidCredentials, which redirects to /login?error=invalid.
    """
    provider = context.providers["password"]
    user = await provider.authenticate(
        LocalCredentials(username=username, password=password), resolver=resolver
    )

    response = RedirectResponse("/secrets", status_code=status.HTTP_303_SEE_OTHER)
    await create_session(
        context.sessions, user.id, response, previous=session_token_from_request(request, context)
    )

    track_auth_attempt("password", "success")
    audit_auth_success(request, user.id, "password")
    return response


@router.get("/logout")
async def logout(
    request: Request,
    context: AppContext = Depends(get_context),
):
    """Destroy the session (if any) and go home."""
    token = session_token_from_request(request, context)
    user_id = await context.sessions.resolve(token)

    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    await destroy_session(context.sessions, token, response)

    if user_id is not None:
        audit_log(AuditEventType.AUTH_LOGOUT, {}, actor=user_id, request=request)
    return response
