"""Credential store: keyed reads and single-record writes over the ORM models.

Every method is its own unit of work (one commit at most). Uniqueness of
usernames and provider identities is left to the database constraints; a
conflicting insert surfaces as ``IntegrityError`` and is translated here.
"""

import logging
from contextlib import contextmanager
from typing import Optional
from uuid import uuid4

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .context import get_db_session
from .db.models import OAuthAccount, Secret, User
from .errors import DuplicateUsername, NotFound, StorageUnavailable


logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Storage error during {action}: {e}")
        raise StorageUnavailable(f"Could not {action}") from e


class CredentialStore:
    """User records, provider links and secrets for one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> User:
        with _storage_errors("load user"):
            user = await self.session.get(User, user_id)
        if user is None:
            raise NotFound(user_id)
        return user

    async def get_by_username(self, username: str) -> Optional[User]:
        with _storage_errors("load user"):
            result = await self.session.execute(select(User).where(User.username == username))
            return result.scalars().first()

    async def get_by_provider(self, provider: str, subject: str) -> Optional[User]:
        with _storage_errors("load user"):
            result = await self.session.execute(
                select(User)
                .join(OAuthAccount, OAuthAccount.user_id == User.id)
                .where(OAuthAccount.provider == provider, OAuthAccount.provider_user_id == subject)
            )
            return result.scalars().first()

    async def register(self, username: str, password_hash: str) -> User:
        """Insert a local account.

        Raises:
            DuplicateUsername: the username unique constraint rejected the row
        """
        user = User(id=str(uuid4()), username=username, password_hash=password_hash)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateUsername(username)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Storage error during register: {e}")
            raise StorageUnavailable("Could not register user") from e
        logger.info(f"Registered local user {user.id}")
        return user

    async def find_or_create_by_provider(
        self, provider: str, subject: str, email: Optional[str] = None
    ) -> User:
        """Return the user linked to ``(provider, subject)``, creating one if absent.

        Two concurrent callers for the same identity both attempt the insert;
        the loser hits the unique constraint, rolls back and re-reads the
        winner's row, so at most one user is ever created per identity.
        """
        existing = await self.get_by_provider(provider, subject)
        if existing is not None:
            return existing

        user = User(id=str(uuid4()))
        account = OAuthAccount(
            id=str(uuid4()),
            user_id=user.id,
            provider=provider,
            provider_user_id=subject,
            provider_email=email,
        )
        self.session.add_all([user, account])
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            existing = await self.get_by_provider(provider, subject)
            if existing is None:
                raise StorageUnavailable(f"Could not link {provider} account")
            logger.info(f"Concurrent {provider} sign-in resolved to existing user {existing.id}")
            return existing
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Storage error during find_or_create: {e}")
            raise StorageUnavailable(f"Could not link {provider} account") from e
        logger.info(f"Created user {user.id} for {provider} identity")
        return user

    async def append_secret(self, user_id: str, text: str) -> None:
        await self.get_by_id(user_id)
        self.session.add(Secret(user_id=user_id, body=text))
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Storage error during append_secret: {e}")
            raise StorageUnavailable("Could not save secret") from e

    async def list_secrets(self, user_id: str) -> list[str]:
        await self.get_by_id(user_id)
        with _storage_errors("list secrets"):
            result = await self.session.execute(
                select(Secret.body).where(Secret.user_id == user_id).order_by(Secret.id)
            )
            return list(result.scalars().all())


def get_store(session: AsyncSession = Depends(get_db_session)) -> CredentialStore:
    return CredentialStore(session)
