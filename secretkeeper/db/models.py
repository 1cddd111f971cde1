"""Database models for secretkeeper.

This module defines SQLAlchemy ORM models for users, their linked OAuth
identities and the secrets they submit.
"""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


class User(Base):
    """Model for a login identity and the owner of secrets."""

    __tablename__ = "users"

    id = Column(String(), primary_key=True, default=lambda: str(uuid4()))
    username = Column(String(), nullable=True, unique=True, index=True)  # Local accounts only
    password_hash = Column(String(), nullable=True)  # bcrypt, salt embedded
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    oauth_accounts = relationship("OAuthAccount", back_populates="user", cascade="all, delete-orphan")
    secrets = relationship(
        "Secret",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Secret.id",
    )

    @property
    def is_local(self) -> bool:
        return self.password_hash is not None


class OAuthAccount(Base):
    """
    OAuth provider account linking.

    One row per (provider, provider user id). The unique constraint is what
    keeps find-or-create from producing two users for the same external
    identity when callbacks race.
    """

    __tablename__ = "oauth_accounts"

    id = Column(String(), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)  # 'google', 'facebook'
    provider_user_id = Column(String(255), nullable=False)  # googleId / facebookId
    provider_email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="uix_oauth_provider_user"),
    )

    user = relationship("User", back_populates="oauth_accounts")


class Secret(Base):
    """A single free-text secret, append-only."""

    __tablename__ = "secrets"

    id = Column(Integer(), primary_key=True, autoincrement=True)
    user_id = Column(String(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    body = Column(Text(), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="secrets")
