"""Facebook Login (Graph API) provider."""

from typing import Any, Optional

import httpx

from .oauth_base import OAuthProvider


GRAPH_VERSION = "v19.0"


class FacebookOAuthProvider(OAuthProvider):
    """Facebook OAuth 2.0 provider.

    The Graph API takes the code exchange as a GET with query parameters and
    the access token as a query parameter on ``/me``.
    """

    name = "facebook"
    display_name = "Facebook"

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
            authorize_url=f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth",
            token_url=f"https://graph.facebook.com/{GRAPH_VERSION}/oauth/access_token",
            userinfo_url=f"https://graph.facebook.com/{GRAPH_VERSION}/me",
            scopes=["public_profile"],
            timeout=timeout,
            transport=transport,
        )

    async def exchange_code(self, client: httpx.AsyncClient, code: str, redirect_uri: str) -> str:
        response = await client.get(
            self.token_url,
            params={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        response.raise_for_status()
        return self._access_token(response.json())

    async def fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> dict[str, Any]:
        response = await client.get(
            self.userinfo_url,
            params={"fields": "id,name", "access_token": access_token},
        )
        response.raise_for_status()
        return self._profile(response.json())

    def extract_subject(self, profile: dict[str, Any]) -> Optional[str]:
        subject = profile.get("id")
        return str(subject) if subject else None
