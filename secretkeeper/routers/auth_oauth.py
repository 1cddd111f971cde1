"""
OAuth authentication routes.

``GET /auth/{provider}`` redirects to the provider with a signed ``state``;
``GET /auth/{provider}/secrets`` is the registered callback. It checks the
state, lets the provider exchange the code and resolve the user, then starts
a session exactly like a password login.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from ..audit import audit_auth_success
from ..auth import create_state_token, new_nonce, session_token_from_request, verify_state_token
from ..auth_providers.providers import AuthProvider
from ..auth_providers.session import create_session
from ..context import AppContext, get_context
from ..errors import UpstreamIdentityFailure
from ..identity import IdentityResolver, get_resolver
from ..middleware.metrics import track_auth_attempt


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["oauth"])

STATE_COOKIE = "oauth_state"
STATE_COOKIE_PATH = "/auth"


def get_oauth_provider(provider: str, context: AppContext) -> AuthProvider:
    """Look up an enabled redirect-based provider or 404."""
    oauth = context.providers.get(provider)
    if oauth is None or not oauth.requires_redirect():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not available"
        )
    return oauth


@router.get("/{provider}")
async def oauth_login(
    provider: str,
    context: AppContext = Depends(get_context),
):
    """
    Initiate OAuth login flow.

    Args:
        provider: OAuth provider name (google, facebook)
    """
    oauth = get_oauth_provider(provider, context)
    settings = context.settings

    nonce = new_nonce()
    state = create_state_token(settings.SESSION_SECRET, provider, nonce, settings.OAUTH_STATE_TTL_SECONDS)
    login_url = oauth.get_login_url(state, settings.callback_url(provider))

    response = RedirectResponse(login_url, status_code=status.HTTP_302_FOUND)
    # Lax so the cookie survives the top-level redirect back from the provider.
    response.set_cookie(
        key=STATE_COOKIE,
        value=nonce,
        max_age=settings.OAUTH_STATE_TTL_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path=STATE_COOKIE_PATH,
    )
    return response


@router.get("/{provider}/secrets")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None, description="OAuth authorization code"),
    state: Optional[str] = Query(None, description="CSRF protection state"),
    error: Optional[str] = Query(None, description="Error reported by the provider"),
    resolver: IdentityResolver = Depends(get_resolver),
    context: AppContext = Depends(get_context),
):
    """
    OAuth callback endpoint.

    1. Verify the state against the nonce cookie
    2. Exchange code for access token and fetch the profile
    3. Find or create the user for the provider id
    4. Create session and redirect to /secrets

    Any failure raises UpstreamIdentityFailure, which redirects to
    /login?error=<provider>.
    """
    oauth = get_oauth_provider(provider, context)
    settings = context.settings

    if error:
        raise UpstreamIdentityFailure(provider, f"provider returned error: {error}")

    if not verify_state_token(settings.SESSION_SECRET, state, provider, request.cookies.get(STATE_COOKIE)):
        raise UpstreamIdentityFailure(provider, "state mismatch")

    user = await oauth.authenticate(
        {"code": code, "redirect_uri": settings.callback_url(provider)},
        resolver=resolver,
    )

    response = RedirectResponse("/secrets", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(STATE_COOKIE, path=STATE_COOKIE_PATH)
    await create_session(
        context.sessions, user.id, response, previous=session_token_from_request(request, context)
    )

    track_auth_attempt(provider, "success")
    audit_auth_success(request, user.id, provider)
    logger.info(f"{provider} sign-in for user {user.id}")
    return response
