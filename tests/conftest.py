from pathlib import Path

import pytest
import pytest_asyncio
from alembic import command
from alembic.config import Config
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from secretkeeper.core.config import Settings
from secretkeeper.main import create_app
from secretkeeper.store import CredentialStore


TEST_SESSION_SECRET = "test-session-secret-0123456789abcdef"


class FakeRedis:
    """Just the async Redis commands the session store uses, with no expiry."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def ping(self):
        return True

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self):
        pass


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="session")
def database_url(tmp_path_factory):
    return f"sqlite+aiosqlite:///{tmp_path_factory.mktemp('db') / 'secretkeeper_test.db'}"


@pytest.fixture(scope="session", autouse=True)
def apply_migrations(database_url):
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")
    yield
    command.downgrade(cfg, "base")


@pytest.fixture
def make_settings(database_url):
    def _make(**overrides) -> Settings:
        values = {
            "DATABASE_URL": database_url,
            "SESSION_SECRET": TEST_SESSION_SECRET,
            "LOGIN_RATE_LIMIT_PER_MINUTE": 0,
            "GOOGLE_CLIENT_ID": None,
            "GOOGLE_CLIENT_SECRET": None,
            "FACEBOOK_APP_ID": None,
            "FACEBOOK_APP_SECRET": None,
            "REDIS_URL": None,
            "AUDIT_LOG_PATH": None,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


async def _truncate(app):
    async with app.state.context.sessionmaker() as session:
        await session.execute(text("DELETE FROM secrets"))
        await session.execute(text("DELETE FROM oauth_accounts"))
        await session.execute(text("DELETE FROM users"))
        await session.commit()


@pytest_asyncio.fixture
async def build_app():
    """Factory for apps over the test database; cleans tables and disposes engines."""
    apps = []

    async def _build(settings, **kwargs):
        app = create_app(settings, **kwargs)
        await _truncate(app)
        apps.append(app)
        return app

    yield _build

    for app in apps:
        await app.state.context.engine.dispose()


@pytest_asyncio.fixture
async def app(build_app, settings):
    return await build_app(settings)


@pytest_asyncio.fixture
async def api_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def db_session(app):
    async with app.state.context.sessionmaker() as session:
        yield session


@pytest.fixture
def store(db_session):
    return CredentialStore(db_session)


@pytest.fixture
def session_cookie_name(settings):
    return settings.SESSION_COOKIE_NAME
