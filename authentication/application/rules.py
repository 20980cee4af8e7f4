from loguru import logger

from notifications.application.provider import NotificationProvider

from ..domain.entities import AuthSession
from .ports import AuthSessionServiceInterface


class OpenSessionRule:
    """Business logic for signing a user in to the notification gateway."""

    def __init__(
        self,
        access_token: str,
        auth_service: AuthSessionServiceInterface,
        notification_provider: NotificationProvider,
        user_id: str | None = None,
    ) -> None:
        self.access_token = access_token
        self.user_id = user_id
        self.auth_service = auth_service
        self.notification_provider = notification_provider

    async def execute(self) -> AuthSession:
        """Open the session and start its notification stream.

        Returns
        -------
        AuthSession
            Session opened from the access token.

        Raises
        ------
        AuthenticationError
            If no user ID can be determined for the token.
        """
        session = self.auth_service.open_session(self.access_token, user_id=self.user_id)
        await self.notification_provider.start(session)
        return session


class CloseSessionRule:
    """Business logic for signing the current user out."""

    def __init__(
        self,
        auth_service: AuthSessionServiceInterface,
        notification_provider: NotificationProvider,
    ) -> None:
        self.auth_service = auth_service
        self.notification_provider = notification_provider

    async def execute(self) -> None:
        """Stop the notification stream, then forget the session."""
        await self.notification_provider.stop()
        self.auth_service.close_session()
        logger.debug("Session closed and notification state discarded")
