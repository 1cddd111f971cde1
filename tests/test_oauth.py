"""Tests for the Google and Facebook authorization-code flows.

Provider endpoints are served by an ``httpx.MockTransport`` handed to the
app, so no request leaves the process.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio
from fastapi import status
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from secretkeeper.db.models import OAuthAccount, User


class ProviderStub:
    """Answers token and profile calls for both providers."""

    def __init__(self):
        self.google_profile = {"sub": "google-123", "email": "alice@example.com"}
        self.facebook_profile = {"id": "fb-456", "name": "Alice"}
        self.fail_token = False
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        host, path = request.url.host, request.url.path

        if self.fail_token and path.endswith(("/token", "/oauth/access_token")):
            return httpx.Response(400, json={"error": "invalid_grant"})

        if host == "oauth2.googleapis.com" and path == "/token":
            return httpx.Response(200, json={"access_token": "google-access", "token_type": "Bearer"})
        if host == "www.googleapis.com" and path == "/oauth2/v3/userinfo":
            assert request.headers["authorization"] == "Bearer google-access"
            return httpx.Response(200, json=self.google_profile)
        if host == "graph.facebook.com" and path.endswith("/oauth/access_token"):
            return httpx.Response(200, json={"access_token": "fb-access"})
        if host == "graph.facebook.com" and path.endswith("/me"):
            assert request.url.params["access_token"] == "fb-access"
            return httpx.Response(200, json=self.facebook_profile)
        return httpx.Response(404)


@pytest.fixture
def provider_stub():
    return ProviderStub()


@pytest_asyncio.fixture
async def oauth_app(build_app, make_settings, provider_stub):
    settings = make_settings(
        GOOGLE_CLIENT_ID="google-client",
        GOOGLE_CLIENT_SECRET="google-secret",
        FACEBOOK_APP_ID="fb-app",
        FACEBOOK_APP_SECRET="fb-secret",
        PUBLIC_BASE_URL="http://testserver",
    )
    return await build_app(settings, oauth_transport=httpx.MockTransport(provider_stub))


@pytest_asyncio.fixture
async def oauth_client(oauth_app):
    async with AsyncClient(transport=ASGITransport(app=oauth_app), base_url="http://testserver") as client:
        yield client


async def start_login(client: AsyncClient, provider: str) -> dict:
    response = await client.get(f"/auth/{provider}")
    assert response.status_code == status.HTTP_302_FOUND
    location = urlparse(response.headers["location"])
    return {"location": location, "query": parse_qs(location.query)}


async def sign_in(client: AsyncClient, provider: str, code: str = "auth-code") -> httpx.Response:
    started = await start_login(client, provider)
    return await client.get(
        f"/auth/{provider}/secrets",
        params={"code": code, "state": started["query"]["state"][0]},
    )


async def count(app, model) -> int:
    async with app.state.context.sessionmaker() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestOAuthRedirect:

    @pytest.mark.asyncio
    async def test_google_redirect(self, oauth_client):
        started = await start_login(oauth_client, "google")

        assert started["location"].netloc == "accounts.google.com"
        query = started["query"]
        assert query["client_id"] == ["google-client"]
        assert query["redirect_uri"] == ["http://testserver/auth/google/secrets"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["profile"]
        assert query["state"][0]
        assert oauth_client.cookies.get("oauth_state", path="/auth")

    @pytest.mark.asyncio
    async def test_facebook_redirect(self, oauth_client):
        started = await start_login(oauth_client, "facebook")

        assert started["location"].netloc == "www.facebook.com"
        assert started["query"]["redirect_uri"] == ["http://testserver/auth/facebook/secrets"]

    @pytest.mark.asyncio
    async def test_login_page_lists_enabled_providers(self, oauth_client):
        providers = (await oauth_client.get("/login")).json()["providers"]

        assert {p["name"] for p in providers} == {"password", "google", "facebook"}
        google = next(p for p in providers if p["name"] == "google")
        assert google["login_url"] == "/auth/google"
        assert google["type"] == "oauth"

    @pytest.mark.asyncio
    async def test_unconfigured_provider_not_found(self, api_client):
        assert (await api_client.get("/auth/google")).status_code == status.HTTP_404_NOT_FOUND
        assert (await api_client.get("/auth/facebook/secrets")).status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_provider_not_found(self, oauth_client):
        assert (await oauth_client.get("/auth/github")).status_code == status.HTTP_404_NOT_FOUND
        assert (await oauth_client.get("/auth/password")).status_code == status.HTTP_404_NOT_FOUND


class TestOAuthCallback:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", ["google", "facebook"])
    async def test_callback_creates_user_and_session(self, oauth_client, oauth_app, provider):
        response = await sign_in(oauth_client, provider)

        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/secrets"

        listing = await oauth_client.get("/secrets")
        assert listing.status_code == 200
        assert listing.json()["secrets"] == []
        assert await count(oauth_app, User) == 1

    @pytest.mark.asyncio
    async def test_repeat_sign_in_reuses_user(self, oauth_client, oauth_app):
        await sign_in(oauth_client, "google")
        await oauth_client.post("/submit", data={"secret": "from google"})
        await oauth_client.get("/logout")

        await sign_in(oauth_client, "google")
        listing = await oauth_client.get("/secrets")

        assert listing.json()["secrets"] == ["from google"]
        assert await count(oauth_app, User) == 1
        assert await count(oauth_app, OAuthAccount) == 1

    @pytest.mark.asyncio
    async def test_same_id_different_provider_is_different_user(self, oauth_client, oauth_app, provider_stub):
        provider_stub.facebook_profile = {"id": "shared-id"}
        provider_stub.google_profile = {"sub": "shared-id"}

        await sign_in(oauth_client, "google")
        await oauth_client.get("/logout")
        await sign_in(oauth_client, "facebook")

        assert await count(oauth_app, User) == 2

    @pytest.mark.asyncio
    async def test_code_exchange_failure(self, oauth_client, oauth_app, provider_stub):
        provider_stub.fail_token = True

        response = await sign_in(oauth_client, "google")

        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/login?error=google"
        assert (await oauth_client.get("/secrets")).headers["location"] == "/login"
        assert await count(oauth_app, User) == 0

    @pytest.mark.asyncio
    async def test_profile_without_id(self, oauth_client, oauth_app, provider_stub):
        provider_stub.facebook_profile = {"name": "No Id"}

        response = await sign_in(oauth_client, "facebook")

        assert response.headers["location"] == "/login?error=facebook"
        assert await count(oauth_app, User) == 0

    @pytest.mark.asyncio
    async def test_provider_error_parameter(self, oauth_client, provider_stub):
        await start_login(oauth_client, "facebook")

        response = await oauth_client.get("/auth/facebook/secrets", params={"error": "access_denied"})

        assert response.headers["location"] == "/login?error=facebook"
        assert provider_stub.calls == []

    @pytest.mark.asyncio
    async def test_forged_state_rejected(self, oauth_client, provider_stub):
        await start_login(oauth_client, "google")

        response = await oauth_client.get(
            "/auth/google/secrets", params={"code": "auth-code", "state": "forged"}
        )

        assert response.headers["location"] == "/login?error=google"
        assert provider_stub.calls == []

    @pytest.mark.asyncio
    async def test_state_for_other_provider_rejected(self, oauth_client, provider_stub):
        started = await start_login(oauth_client, "facebook")

        response = await oauth_client.get(
            "/auth/google/secrets",
            params={"code": "auth-code", "state": started["query"]["state"][0]},
        )

        assert response.headers["location"] == "/login?error=google"
        assert provider_stub.calls == []

    @pytest.mark.asyncio
    async def test_state_without_nonce_cookie_rejected(self, oauth_client, provider_stub):
        started = await start_login(oauth_client, "google")
        oauth_client.cookies.clear()

        response = await oauth_client.get(
            "/auth/google/secrets",
            params={"code": "auth-code", "state": started["query"]["state"][0]},
        )

        assert response.headers["location"] == "/login?error=google"
        assert provider_stub.calls == []
