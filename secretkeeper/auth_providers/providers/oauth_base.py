"""
Base OAuth provider implementation.

Authorization-code flow shared by the Google and Facebook providers:
redirect to the provider, exchange the returned code for an access token,
fetch the profile, then find-or-create the local user for the profile id.
"""

import logging
from typing import Any, Optional
from abc import abstractmethod
from urllib.parse import urlencode

import httpx

from . import AuthProvider
from ...db.models import User
from ...errors import UpstreamIdentityFailure
from ...identity import IdentityResolver, ProviderIdentity


logger = logging.getLogger(__name__)


class OAuthProvider(AuthProvider):
    """
    Base class for OAuth 2.0 providers.

    Subclasses supply the endpoints and say which profile field carries the
    stable user id.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        authorize_url: str,
        token_url: str,
        userinfo_url: str,
        scopes: list[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OAuth provider.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            authorize_url: Provider's authorization endpoint
            token_url: Provider's token endpoint
            userinfo_url: Provider's user info endpoint
            scopes: OAuth scopes to request
            timeout: Per-request timeout for token and profile calls
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.scopes = scopes
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def extract_subject(self, profile: dict[str, Any]) -> Optional[str]:
        """Return the provider's stable user id from a profile payload."""
        pass

    def extract_email(self, profile: dict[str, Any]) -> Optional[str]:
        email = profile.get("email")
        return str(email) if email else None

    def get_login_url(self, state: str, redirect_uri: str) -> str:
        """
        Generate OAuth authorization URL.

        Args:
            state: CSRF protection state token
            redirect_uri: Callback URL

        Returns:
            OAuth authorization URL
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }

        return f"{self.authorize_url}?{urlencode(params)}"

    def requires_redirect(self) -> bool:
        """OAuth requires redirect flow."""
        return True

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def exchange_code(self, client: httpx.AsyncClient, code: str, redirect_uri: str) -> str:
        response = await client.post(
            self.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        return self._access_token(response.json())

    async def fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> dict[str, Any]:
        response = await client.get(
            self.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return self._profile(response.json())

    def _access_token(self, payload: Any) -> str:
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise UpstreamIdentityFailure(self.name, "token response carried no access_token")
        return str(token)

    def _profile(self, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise UpstreamIdentityFailure(self.name, "profile response is not an object")
        return payload

    async def authenticate(self, credentials: dict, **kwargs) -> User:
        """
        Authenticate user via OAuth.

        Args:
            credentials: Dict with 'code' (authorization code) and 'redirect_uri'
            **kwargs: Must include 'resolver' (IdentityResolver)

        Returns:
            The found-or-created User for the provider identity

        Raises:
            UpstreamIdentityFailure: on any provider-side failure
        """
        resolver: IdentityResolver = kwargs.get("resolver")
        if resolver is None:
            raise ValueError(f"{self.__class__.__name__} requires 'resolver' in kwargs")

        code = credentials.get("code")
        if not code:
            raise UpstreamIdentityFailure(self.name, "callback carried no authorization code")

        try:
            async with self._client() as client:
                access_token = await self.exchange_code(client, code, credentials["redirect_uri"])
                profile = await self.fetch_profile(client, access_token)
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} OAuth exchange failed: {e}")
            raise UpstreamIdentityFailure(self.name, str(e)) from e
        except ValueError as e:
            logger.warning(f"{self.name} returned malformed JSON: {e}")
            raise UpstreamIdentityFailure(self.name, "malformed response") from e

        subject = self.extract_subject(profile)
        if not subject:
            raise UpstreamIdentityFailure(self.name, "profile carried no user id")

        return await resolver.find_or_create(
            ProviderIdentity(provider=self.name, subject=str(subject), email=self.extract_email(profile))
        )
