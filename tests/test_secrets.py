"""Tests for the protected secrets pages."""

import pytest
from fastapi import status
from sqlalchemy import delete, func, select

from secretkeeper.db.models import Secret, User


@pytest.fixture
def credentials():
    return {"username": "alice", "password": "Passw0rd!"}


class TestSubmitSecret:
    """Tests for GET/POST /submit and GET /secrets."""

    @pytest.mark.asyncio
    async def test_register_submit_and_list(self, api_client, credentials):
        response = await api_client.post("/register", data=credentials)
        assert response.headers["location"] == "/secrets"

        response = await api_client.post("/submit", data={"secret": "I like pineapple"})
        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/secrets"

        listing = await api_client.get("/secrets")
        assert listing.status_code == 200
        assert listing.json()["secrets"] == ["I like pineapple"]

    @pytest.mark.asyncio
    async def test_secrets_listed_in_submission_order(self, api_client, credentials):
        await api_client.post("/register", data=credentials)

        for text in ("first", "second", "third"):
            await api_client.post("/submit", data={"secret": text})

        listing = await api_client.get("/secrets")
        assert listing.json()["secrets"] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_secrets_survive_logout(self, api_client, credentials):
        await api_client.post("/register", data=credentials)
        await api_client.post("/submit", data={"secret": "kept"})
        await api_client.get("/logout")

        await api_client.post("/login", data=credentials)
        listing = await api_client.get("/secrets")

        assert listing.json()["secrets"] == ["kept"]

    @pytest.mark.asyncio
    async def test_secrets_are_per_user(self, api_client, credentials):
        await api_client.post("/register", data=credentials)
        await api_client.post("/submit", data={"secret": "alice only"})
        await api_client.get("/logout")

        await api_client.post("/register", data={"username": "bob", "password": "Passw0rd!"})
        listing = await api_client.get("/secrets")

        assert listing.json()["secrets"] == []

    @pytest.mark.asyncio
    async def test_unauthenticated_submit_writes_nothing(self, api_client, db_session):
        response = await api_client.post("/submit", data={"secret": "sneaky"})

        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/login"

        count = await db_session.scalar(select(func.count()).select_from(Secret))
        assert count == 0

    @pytest.mark.asyncio
    async def test_empty_secret_rejected(self, api_client, credentials):
        await api_client.post("/register", data=credentials)

        response = await api_client.post("/submit", data={"secret": ""})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.asyncio
    async def test_submit_page_requires_login(self, api_client, credentials):
        assert (await api_client.get("/submit")).status_code == status.HTTP_303_SEE_OTHER

        await api_client.post("/register", data=credentials)
        page = await api_client.get("/submit")

        assert page.status_code == 200
        assert page.json() == {
            "page": "submit",
            "action": "/submit",
            "method": "POST",
            "fields": ["secret"],
            "error": None,
            "providers": [],
        }

    @pytest.mark.asyncio
    async def test_session_for_deleted_user_is_not_found(self, api_client, credentials, db_session):
        await api_client.post("/register", data=credentials)

        await db_session.execute(delete(User).where(User.username == "alice"))
        await db_session.commit()

        response = await api_client.get("/secrets")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Not Found"
