"""Authentication utilities: password hashing, OAuth state tokens and the auth gate.

Passwords are hashed with bcrypt through passlib. OAuth ``state`` values are
short-lived HS256 JWTs signed with the session secret. The gate dependencies
turn the session cookie into an ``AuthenticatedUser`` without touching any
other state.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from .context import AppContext, get_context
from .errors import LoginRequired


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

STATE_ALGORITHM = "HS256"
STATE_ISSUER = "secretkeeper"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity exposed to protected routes."""

    user_id: str
    session_token: str


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string (salt included)
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain text password against its hashed version.

    Accounts without a password (OAuth-only) never verify. When there is no
    hash to compare, a dummy verification still runs so the failure costs
    the same as a wrong password.
    """
    if not hashed_password:
        pwd_context.dummy_verify()
        return False
    return pwd_context.verify(plain_password, hashed_password)


def new_nonce() -> str:
    return secrets.token_urlsafe(16)


def create_state_token(secret_key: str, provider: str, nonce: str, ttl_seconds: int) -> str:
    """Create the OAuth ``state`` parameter for a login redirect.

    Args:
        secret_key: Signing key (the session secret)
        provider: Provider the redirect goes to
        nonce: Random value also stored in a short-lived cookie
        ttl_seconds: How long the login round trip may take

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "provider": provider,
        "nonce": nonce,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
        "iss": STATE_ISSUER,
        "type": "oauth_state",
    }
    return jwt.encode(to_encode, secret_key, algorithm=STATE_ALGORITHM)


def verify_state_token(secret_key: str, token: Optional[str], provider: str, nonce: Optional[str]) -> bool:
    """Check a returned ``state`` against the provider and the nonce cookie."""
    if not token or not nonce:
        return False
    try:
        payload = jwt.decode(token, secret_key, algorithms=[STATE_ALGORITHM], issuer=STATE_ISSUER)
    except JWTError:
        return False
    return (
        payload.get("type") == "oauth_state"
        and payload.get("provider") == provider
        and secrets.compare_digest(str(payload.get("nonce", "")), nonce)
    )


def session_token_from_request(request: Request, context: AppContext) -> Optional[str]:
    """Unsigned session token carried by the request cookie, if any."""
    raw = request.cookies.get(context.settings.SESSION_COOKIE_NAME)
    return context.sessions.unsign(raw)


async def get_current_user(
    request: Request,
    context: AppContext = Depends(get_context),
) -> Optional[AuthenticatedUser]:
    """Resolve the session cookie to the authenticated user.

    This dependency is optional - returns None when the request carries no
    cookie, a tampered cookie, or a destroyed/expired session.
    Use `require_user` for routes that need an identity.
    """
    token = session_token_from_request(request, context)
    user_id = await context.sessions.resolve(token)
    if user_id is None:
        return None
    return AuthenticatedUser(user_id=user_id, session_token=token)


async def require_user(
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
) -> AuthenticatedUser:
    """Require authentication.

    Raises:
        LoginRequired: translated into a redirect to /login
    """
    if user is None:
        raise LoginRequired()
    return user
