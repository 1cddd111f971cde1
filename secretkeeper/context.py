"""Server context built once at startup and shared by all requests.

``create_app`` constructs one ``AppContext`` and stores it on
``app.state.context``; request dependencies read it from there instead of
from module globals, so several independent apps (e.g. one per test) can
live in the same process.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .auth_providers.providers import AuthProvider
from .auth_providers.session import SessionManager
from .core.config import Settings
from .middleware.rate_limit import RateLimiter


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    sessionmaker: async_sessionmaker[AsyncSession]
    sessions: SessionManager
    providers: dict[str, AuthProvider]
    rate_limiter: RateLimiter
    scheduler: AsyncIOScheduler = field(default_factory=AsyncIOScheduler)

    def oauth_providers(self) -> list[str]:
        return [name for name, provider in self.providers.items() if provider.requires_redirect()]


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_db_session(context: AppContext = Depends(get_context)) -> AsyncIterator[AsyncSession]:
    async with context.sessionmaker() as session:
        yield session
