"""Registry of the authentication providers enabled by configuration."""

import logging
from typing import Optional

import httpx

from ..core.config import Settings
from .providers import AuthProvider
from .providers.facebook import FacebookOAuthProvider
from .providers.google import GoogleOAuthProvider
from .providers.password import PasswordAuthProvider


logger = logging.getLogger(__name__)


def build_providers(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, AuthProvider]:
    """Password login is always on; OAuth providers need a client id and secret."""
    providers: dict[str, AuthProvider] = {"password": PasswordAuthProvider()}

    if settings.google_enabled():
        providers["google"] = GoogleOAuthProvider(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
    else:
        logger.info("Google sign-in disabled (GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set)")

    if settings.facebook_enabled():
        providers["facebook"] = FacebookOAuthProvider(
            client_id=settings.FACEBOOK_APP_ID,
            client_secret=settings.FACEBOOK_APP_SECRET,
            timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
    else:
        logger.info("Facebook sign-in disabled (FACEBOOK_APP_ID/FACEBOOK_APP_SECRET not set)")

    return providers
