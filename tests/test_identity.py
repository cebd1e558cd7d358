"""
Tests for sessions and the identity providers.

The Streamlit provider needs a running Streamlit app and is not
covered here; StaticIdentityProvider and small fakes stand in.
"""

import pytest

from moneywise.auth import (
    AuthError,
    IdentityProvider,
    SessionEvent,
    SessionManager,
    StaticIdentityProvider,
    UserSession,
)


class BrokenProvider(IdentityProvider):
    def sign_in(self, provider="google"):
        raise ConnectionError("provider unreachable")

    def sign_out(self):
        raise ConnectionError("provider unreachable")

    def current_session(self):
        return None


class TestUserSession:
    """Tests for the session model."""

    def test_label_prefers_display_name(self):
        """Test the label falls back from name to email to id."""
        assert UserSession(user_id="u", email="a@b.c", display_name="Asha").label == "Asha"
        assert UserSession(user_id="u", email="a@b.c").label == "a@b.c"
        assert UserSession(user_id="u").label == "u"

    def test_user_id_required(self):
        """Test an empty user id is rejected."""
        with pytest.raises(ValueError):
            UserSession(user_id="")


class TestStaticIdentityProvider:
    """Tests for the development provider."""

    def test_starts_signed_out_by_default(self):
        """Test no session until sign_in."""
        provider = StaticIdentityProvider("dev-user")
        assert provider.current_session() is None
        assert provider.sign_in().user_id == "dev-user"

    def test_signed_in_flag(self):
        """Test signed_in=True starts with a session."""
        provider = StaticIdentityProvider("dev-user", email="dev@example.com", signed_in=True)
        assert provider.current_session().email == "dev@example.com"


class TestSessionManager:
    """Tests for session tracking and change notification."""

    def setup_method(self):
        self.provider = StaticIdentityProvider("user-1")
        self.manager = SessionManager(self.provider)
        self.events = []
        self.manager.on_change(lambda event, session: self.events.append((event, session)))

    def test_sign_in_notifies_once(self):
        """Test repeated refreshes don't repeat the SIGNED_IN event."""
        self.manager.sign_in()
        self.manager.refresh()
        self.manager.refresh()

        assert [event for event, _ in self.events] == [SessionEvent.SIGNED_IN]
        assert self.manager.user_id == "user-1"

    def test_sign_out(self):
        """Test signing out clears the session and notifies."""
        self.manager.sign_in()
        self.manager.sign_out()

        assert self.manager.session is None
        assert self.events[-1] == (SessionEvent.SIGNED_OUT, None)

    def test_refresh_picks_up_outside_sign_in(self):
        """Test a sign-in completed by the provider is noticed on refresh."""
        self.provider.sign_in()
        session = self.manager.refresh()
        assert session.user_id == "user-1"
        assert self.events[0][0] == SessionEvent.SIGNED_IN

    def test_unsubscribe_listener(self):
        """Test a removed listener hears nothing more."""
        heard = []
        unsubscribe = self.manager.on_change(lambda e, s: heard.append(e))
        unsubscribe()
        self.manager.sign_in()
        assert heard == []

    def test_failing_listener_is_isolated(self):
        """Test one broken listener doesn't stop the others."""
        def broken(event, session):
            raise RuntimeError("boom")

        manager = SessionManager(self.provider)
        heard = []
        manager.on_change(broken)
        manager.on_change(lambda e, s: heard.append(e))
        manager.sign_in()
        assert heard == [SessionEvent.SIGNED_IN]

    def test_provider_errors_become_auth_errors(self):
        """Test provider failures surface as AuthError."""
        manager = SessionManager(BrokenProvider())
        with pytest.raises(AuthError, match="Sign-in failed"):
            manager.sign_in()
        with pytest.raises(AuthError, match="Sign-out failed"):
            manager.sign_out()
