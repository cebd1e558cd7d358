"""
Identity

The app never implements authentication itself. An IdentityProvider
answers "who is signed in?", and SessionManager turns changes in that
answer into SIGNED_IN / SIGNED_OUT notifications for the UI and the
audit log.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field

from moneywise.models.finance import utc_now


logger = structlog.get_logger(__name__)


class AuthError(Exception):
    """Sign-in or sign-out could not be completed."""
    pass


class SessionEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


class UserSession(BaseModel):
    """The signed-in user, as reported by the identity provider."""

    user_id: str = Field(..., min_length=1, description="Opaque owner key")
    email: Optional[str] = None
    display_name: Optional[str] = None
    provider: str = "google"
    signed_in_at: datetime = Field(default_factory=utc_now)

    @property
    def label(self) -> str:
        return self.display_name or self.email or self.user_id


SessionListener = Callable[[SessionEvent, Optional[UserSession]], None]


class IdentityProvider(ABC):
    """Abstract identity provider."""

    @abstractmethod
    def sign_in(self, provider: str = "google") -> Optional[UserSession]:
        """
        Start or complete a sign-in.

        Redirect-based providers may return None and finish on the
        next page load.
        """
        pass

    @abstractmethod
    def sign_out(self) -> None:
        pass

    @abstractmethod
    def current_session(self) -> Optional[UserSession]:
        """The current session, or None when nobody is signed in."""
        pass


class StaticIdentityProvider(IdentityProvider):
    """
    Development/test provider with a fixed user.

    Starts signed out unless `signed_in=True`.
    """

    def __init__(
        self,
        user_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        signed_in: bool = False,
    ):
        self._user_id = user_id
        self._email = email
        self._display_name = display_name
        self._session: Optional[UserSession] = None
        if signed_in:
            self.sign_in()

    def sign_in(self, provider: str = "google") -> Optional[UserSession]:
        if self._session is None:
            self._session = UserSession(
                user_id=self._user_id,
                email=self._email,
                display_name=self._display_name,
                provider=provider,
            )
        return self._session

    def sign_out(self) -> None:
        self._session = None

    def current_session(self) -> Optional[UserSession]:
        return self._session


class SessionManager:
    """
    Owns the identity provider and tracks the current session.

    Listeners only hear about real changes: refreshing twice with the
    same user signed in notifies once.
    """

    def __init__(self, provider: IdentityProvider):
        self._provider = provider
        self._session: Optional[UserSession] = None
        self._listeners: dict[str, SessionListener] = {}

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    @property
    def session(self) -> Optional[UserSession]:
        return self._session

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id if self._session else None

    def refresh(self) -> Optional[UserSession]:
        """Ask the provider who is signed in and notify on change."""
        self._update(self._provider.current_session())
        return self._session

    def sign_in(self, provider: str = "google") -> Optional[UserSession]:
        try:
            session = self._provider.sign_in(provider)
        except AuthError:
            raise
        except Exception as e:
            logger.error("sign_in_failed", provider=provider, error=str(e))
            raise AuthError(f"Sign-in failed: {e}") from e
        self._update(session or self._provider.current_session())
        return self._session

    def sign_out(self) -> None:
        try:
            self._provider.sign_out()
        except Exception as e:
            logger.error("sign_out_failed", error=str(e))
            raise AuthError(f"Sign-out failed: {e}") from e
        self._update(None)

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener. Returns a function that removes it."""
        token = str(uuid4())
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def _update(self, session: Optional[UserSession]) -> None:
        previous = self._session
        previous_id = previous.user_id if previous else None
        new_id = session.user_id if session else None
        self._session = session

        if previous_id == new_id:
            return

        if new_id is None:
            event = SessionEvent.SIGNED_OUT
        else:
            event = SessionEvent.SIGNED_IN
        logger.info("session_changed", event=event.value, user_id=new_id or previous_id)

        for listener in list(self._listeners.values()):
            try:
                listener(event, session)
            except Exception as e:
                logger.error("session_listener_failed", event=event.value, error=str(e))
