"""Identity resolution for every login path.

Each call is an awaited coroutine that either returns the ``User`` or raises
a ``SecretKeeperError`` subclass, so callers compose login steps as plain
sequential code.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends

from .auth import hash_password, verify_password
from .db.models import User
from .errors import InvalidCredentials
from .store import CredentialStore, get_store


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalCredentials:
    username: str
    password: str

    @property
    def normalized_username(self) -> str:
        return self.username.strip()


@dataclass(frozen=True)
class ProviderIdentity:
    """A provider-scoped identifier, e.g. ``ProviderIdentity("google", sub)``."""

    provider: str
    subject: str
    email: Optional[str] = None


class IdentityResolver:
    """Finds or creates the user behind a set of credentials."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def find_or_create(self, identity: ProviderIdentity) -> User:
        """Idempotent: the same provider identity always maps to the same user."""
        return await self.store.find_or_create_by_provider(
            identity.provider, identity.subject, email=identity.email
        )

    async def register(self, credentials: LocalCredentials) -> User:
        """Create a local account.

        Raises:
            DuplicateUsername: if the username is taken
        """
        return await self.store.register(
            credentials.normalized_username, hash_password(credentials.password)
        )

    async def login(self, credentials: LocalCredentials) -> User:
        """Verify a username/password pair.

        Raises:
            InvalidCredentials: unknown username, password-less account or wrong password
        """
        user = await self.store.get_by_username(credentials.normalized_username)
        hashed = user.password_hash if user is not None else None
        if not verify_password(credentials.password, hashed) or user is None:
            logger.info("Rejected local login attempt")
            raise InvalidCredentials()
        return user


def get_resolver(store: CredentialStore = Depends(get_store)) -> IdentityResolver:
    return IdentityResolver(store)
