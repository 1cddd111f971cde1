"""
Authentication provider abstraction.

Supports multiple authentication methods (password, OAuth) behind one
interface, so login routes do not care how an identity was proven.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ...db.models import User


class AuthProvider(ABC):
    """
    Base authentication provider interface.

    All authentication methods (password, Google, Facebook) implement this interface.
    """

    name: str = ""
    display_name: str = ""

    @abstractmethod
    async def authenticate(self, credentials: Any, **kwargs) -> User:
        """
        Authenticate user with provided credentials.

        Args:
            credentials: Provider-specific credentials
            **kwargs: Must include 'resolver' (IdentityResolver)

        Returns:
            Authenticated User object

        Raises:
            SecretKeeperError: If authentication fails
        """
        pass

    def get_login_url(self, state: str, redirect_uri: str) -> Optional[str]:
        """
        Get OAuth login URL (None for non-OAuth providers).

        Args:
            state: CSRF protection state token
            redirect_uri: Where to redirect after auth

        Returns:
            OAuth login URL or None
        """
        return None

    def requires_redirect(self) -> bool:
        """Check if this provider requires OAuth redirect flow."""
        return False


__all__ = ["AuthProvider"]
