"""
Authentication providers package.

Handles provider-based authentication (OAuth, password) and session management.
"""

from .providers import AuthProvider  # noqa: F401
from .session import SessionManager, create_session, destroy_session  # noqa: F401

__all__ = ["AuthProvider", "SessionManager", "create_session", "destroy_session"]
