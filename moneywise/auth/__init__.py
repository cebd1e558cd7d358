"""
Identity package.

StreamlitIdentityProvider is imported from its own module so the
rest of the package works without a Streamlit runtime.
"""

from moneywise.auth.identity import (
    AuthError,
    IdentityProvider,
    SessionEvent,
    SessionListener,
    SessionManager,
    StaticIdentityProvider,
    UserSession,
)

__all__ = [
    "AuthError",
    "IdentityProvider",
    "SessionEvent",
    "SessionListener",
    "SessionManager",
    "StaticIdentityProvider",
    "UserSession",
]
