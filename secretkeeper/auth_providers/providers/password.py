"""Password-based authentication provider."""

from ...db.models import User
from ...errors import InvalidCredentials
from ...identity import IdentityResolver, LocalCredentials
from . import AuthProvider


class PasswordAuthProvider(AuthProvider):
    """
    Username/password authentication provider.

    Uses bcrypt for password hashing and verification.
    """

    name = "password"
    display_name = "Username/Password"

    async def authenticate(self, credentials: LocalCredentials, **kwargs) -> User:
        """
        Authenticate user with username and password.

        Args:
            credentials: Username and password from the login form
            **kwargs: Must include 'resolver' (IdentityResolver)

        Returns:
            Authenticated User object

        Raises:
            InvalidCredentials: if the pair does not match a local account
        """
        resolver: IdentityResolver = kwargs.get("resolver")
        if resolver is None:
            raise ValueError("PasswordAuthProvider requires 'resolver' in kwargs")

        if not credentials.normalized_username or not credentials.password:
            raise InvalidCredentials()

        return await resolver.login(credentials)
