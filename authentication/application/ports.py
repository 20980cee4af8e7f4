from abc import ABC, abstractmethod
from typing import Any, Callable

import httpx

from notifications.application.fanout import Subscription

from ..domain.entities import AuthSession


class AuthSessionServiceInterface(ABC):
    """Abstract base class for the authenticated session of the gateway.

    Defines opening and closing the session, token renewal, and sending
    authenticated requests to the backend.
    """

    @property
    @abstractmethod
    def session(self) -> AuthSession | None:
        """Currently open session, or None."""
        pass

    @abstractmethod
    def open_session(self, access_token: str, user_id: str | None = None) -> AuthSession:
        """Open a session from an access token.

        Parameters
        ----------
        access_token: str
            Access token issued by the backend.
        user_id: str | None, optional
            User ID, required when the token carries no user claim.

        Returns
        -------
        AuthSession

        Raises
        ------
        AuthenticationError
            If no user ID can be determined.
        """
        pass

    @abstractmethod
    def close_session(self) -> None:
        """Forget the current session."""
        pass

    @abstractmethod
    async def refresh_access_token(self) -> str:
        """Obtain a new access token from the backend.

        Returns
        -------
        str
            Refreshed access token.

        Raises
        ------
        AuthenticationError
            If the backend refuses to renew the session.
        """
        pass

    @abstractmethod
    async def renew_session(self) -> str:
        """Refresh the access token, or expire the session when refused.

        Session expiry listeners are notified before the error is raised.

        Returns
        -------
        str
            Refreshed access token.

        Raises
        ------
        AuthenticationError
            If the session expired and was closed.
        """
        pass

    @abstractmethod
    def on_session_expired(self, callback: Callable[[AuthSession], None]) -> Subscription:
        """Subscribe to sessions closed because they could not be renewed.

        Parameters
        ----------
        callback: Callable[[AuthSession], None]
            Called with the session that expired.

        Returns
        -------
        Subscription
        """
        pass

    @abstractmethod
    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request to the backend.

        Parameters
        ----------
        method: str
            HTTP method.
        url: str
            URL, relative to the backend base URL or absolute.
        **kwargs
            Extra arguments passed to `httpx.AsyncClient.request`.

        Returns
        -------
        httpx.Response

        Raises
        ------
        AuthenticationError
            If there is no session or it expired and could not be renewed.
        httpx.HTTPError
            If the request fails in transport.
        """
        pass
