"""Identity and session package."""

from cashflow.auth.session import (
    AuthError,
    IdentityProvider,
    Principal,
    SessionManager,
)

__all__ = [
    "AuthError",
    "IdentityProvider",
    "Principal",
    "SessionManager",
]
