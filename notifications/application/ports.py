from abc import ABC, abstractmethod
from typing import AsyncContextManager, AsyncIterator

from ..domain.entities import NotificationPage


class NotificationRepository(ABC):
    """Abstract base class for the backend notification API.

    Defines the queries used to seed local state and the actions that must be
    acknowledged by the backend before local state changes.
    """

    @abstractmethod
    async def get_notifications(self, page: int = 0, size: int = 20) -> NotificationPage:
        """Retrieve one page of the user's notifications.

        Parameters
        ----------
        page : int
            Zero-based page offset.
        size : int
            Maximum number of notifications to return.

        Returns
        -------
        NotificationPage
            Notifications in server order plus the backend total.

        Raises
        ------
        NotificationBackendError
            If the backend cannot be reached or answers with an error.
        """
        pass

    @abstractmethod
    async def get_unread_count(self) -> int:
        """Retrieve the backend's unread notification count.

        Returns
        -------
        int

        Raises
        ------
        NotificationBackendError
            If the backend cannot be reached or answers with an error.
        """
        pass

    @abstractmethod
    async def mark_as_read(self, notification_id: str) -> bool:
        """Mark a notification as read.

        Parameters
        ----------
        notification_id : str
            ID of the notification.

        Returns
        -------
        bool
            True if the backend acknowledged the update.
        """
        pass

    @abstractmethod
    async def mark_all_as_read(self) -> bool:
        """Mark every notification of the user as read.

        Returns
        -------
        bool
            True if the backend acknowledged the update.
        """
        pass

    @abstractmethod
    async def delete(self, notification_id: str) -> bool:
        """Delete a notification.

        Parameters
        ----------
        notification_id : str
            ID of the notification.

        Returns
        -------
        bool
            True if the backend acknowledged the deletion.
        """
        pass


class NotificationStreamSource(ABC):
    """Abstract base class for opening the per-user notification stream."""

    @abstractmethod
    def open(
        self, user_id: str, access_token: str
    ) -> AsyncContextManager[AsyncIterator[str | bytes]]:
        """Open an authenticated notification stream.

        Parameters
        ----------
        user_id : str
            Recipient whose stream is opened.
        access_token : str
            Bearer token for the request.

        Returns
        -------
        AsyncContextManager[AsyncIterator[str | bytes]]
            Context manager yielding the raw chunks of the response body.
            Leaving the context closes the connection.

        Raises
        ------
        StreamConnectionError
            If the stream cannot be opened or fails while reading.
        """
        pass
