"""Google OAuth 2.0 provider."""

from typing import Any, Optional

import httpx

from .oauth_base import OAuthProvider


class GoogleOAuthProvider(OAuthProvider):
    """Google OAuth 2.0 provider.

    Uses the v3 userinfo endpoint (the Google+ profile API is gone); the
    stable account id is the ``sub`` claim.
    """

    name = "google"
    display_name = "Google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            client_id=client_id,
            client_secret=client_secret,
            authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
            token_url="https://oauth2.googleapis.com/token",
            userinfo_url="https://www.googleapis.com/oauth2/v3/userinfo",
            scopes=["profile"],
            timeout=timeout,
            transport=transport,
        )

    def extract_subject(self, profile: dict[str, Any]) -> Optional[str]:
        subject = profile.get("sub") or profile.get("id")
        return str(subject) if subject else None
