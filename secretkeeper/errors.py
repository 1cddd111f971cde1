"""Domain errors raised by the store, resolver and providers.

Route handlers never catch these themselves; the exception handlers in
``middleware.error_handler`` translate each one into a redirect or a JSON
error response.
"""


class SecretKeeperError(Exception):
    """Base class for all application errors."""


class NotFound(SecretKeeperError):
    """A user id does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class DuplicateUsername(SecretKeeperError):
    """Registration attempted with a username that is already taken."""

    def __init__(self, username: str):
        super().__init__(f"Username {username!r} already registered")
        self.username = username


class InvalidCredentials(SecretKeeperError):
    """Unknown username or wrong password."""

    def __init__(self):
        super().__init__("Incorrect username or password")


class UpstreamIdentityFailure(SecretKeeperError):
    """The OAuth provider rejected the exchange or returned an unusable profile."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider} sign-in failed: {reason}")
        self.provider = provider
        self.reason = reason


class StorageUnavailable(SecretKeeperError):
    """The record store could not complete a read or write."""


class LoginRequired(SecretKeeperError):
    """A protected route was requested without a valid session."""
