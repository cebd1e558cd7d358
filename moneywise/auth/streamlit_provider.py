"""
Streamlit OIDC identity provider.

Uses Streamlit's built-in authentication (st.login / st.logout / st.user).
The OIDC client itself is configured in .streamlit/secrets.toml under
[auth] or [auth.<provider>].
"""

from typing import Optional

import streamlit as st

from moneywise.auth.identity import IdentityProvider, UserSession


class StreamlitIdentityProvider(IdentityProvider):
    """IdentityProvider backed by st.user."""

    def __init__(self, provider: str = "google"):
        self._provider = provider

    def sign_in(self, provider: Optional[str] = None) -> Optional[UserSession]:
        # Redirects to the provider; the session shows up on the next run
        st.login(provider or self._provider)
        return None

    def sign_out(self) -> None:
        st.logout()

    def current_session(self) -> Optional[UserSession]:
        if not st.user.is_logged_in:
            return None

        user_id = st.user.get("sub") or st.user.get("email")
        if not user_id:
            return None

        return UserSession(
            user_id=str(user_id),
            email=st.user.get("email"),
            display_name=st.user.get("name"),
            provider=self._provider,
        )
