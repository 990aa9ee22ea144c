"""
Session management for the vault client library.

The session is the process-wide bearer credential. Only ``SessionManager``
mutates it; every outgoing request reads it at send time, so a clear is
seen by the very next request.
"""

from typing import Callable, List, Optional

import httpx
from loguru import logger

LoginListener = Callable[[], None]


class SessionManager:
    """Holds the bearer token and attaches it to outgoing requests."""

    def __init__(self, token: Optional[str] = None):
        self._token: Optional[str] = token or None
        self._login_listeners: List[LoginListener] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_credential(self, token: str) -> None:
        """Store a token; all later requests carry it."""
        self._token = token or None
        logger.info("Session credential set")

    def clear_credential(self) -> None:
        """Drop the token; later requests go out unauthenticated."""
        if self._token is not None:
            logger.info("Session credential cleared")
        self._token = None

    def attach(self, request: httpx.Request) -> httpx.Request:
        """
        Copy the current token into the request's Authorization header.

        Without a session nothing is added, and any Authorization header the
        request already carries is dropped: a request built under a cleared
        session must not go out with the old token.
        """
        if self._token:
            request.headers["Authorization"] = f"Bearer {self._token}"
        else:
            request.headers.pop("Authorization", None)
        return request

    def add_login_listener(self, listener: LoginListener) -> None:
        """Register a callback that sends the user to a login surface."""
        if listener not in self._login_listeners:
            self._login_listeners.append(listener)

    def remove_login_listener(self, listener: LoginListener) -> None:
        if listener in self._login_listeners:
            self._login_listeners.remove(listener)

    def on_authentication_failure(self) -> None:
        """
        Automatic security response to a 401 from any endpoint.

        Clears the credential and asks the UI to show its login surface.
        This is the only way a session ends without an explicit logout.
        """
        logger.warning("Authentication failure reported by backend; clearing session")
        self.clear_credential()

        for listener in list(self._login_listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"Login listener {listener!r} failed: {str(e)}")


# Global session instance
_session: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """
    Get the process-wide session manager.

    Returns:
        SessionManager instance
    """
    global _session
    if _session is None:
        _session = SessionManager()
    return _session


def reset_session_manager() -> None:
    """Drop the process-wide session manager (used between tests and logins)."""
    global _session
    _session = None
