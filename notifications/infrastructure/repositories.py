from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from authentication.application.ports import AuthSessionServiceInterface
from authentication.domain.exceptions import AuthenticationError
from config.base import Settings

from ..application.ports import NotificationRepository as DomainNotificationRepository
from ..domain.entities import Notification, NotificationPage
from ..domain.exceptions import NotificationBackendError


class NotificationRepository(DomainNotificationRepository):
    """Concrete implementation of NotificationRepository over the backend REST API.

    Responses use the backend envelope `{"status", "message", "data"}`; pages
    are Spring-style `{"content": [...], "totalElements": n}` objects.
    """

    def __init__(self, auth_service: AuthSessionServiceInterface, settings: Settings) -> None:
        """Initialize the repository.

        Parameters
        ----------
        auth_service : AuthSessionServiceInterface
            Session service sending authenticated requests.
        settings : Settings
            Application settings holding the endpoint paths.
        """
        self._auth_service = auth_service
        self._notifications_path = settings.notifications_path
        self._unread_count_path = settings.unread_count_path
        self._read_all_path = settings.read_all_path

    async def get_notifications(self, page: int = 0, size: int = 20) -> NotificationPage:
        """Retrieve one page of notifications.

        Parameters
        ----------
        page : int
            Zero-based page offset.
        size : int
            Maximum number of notifications to return.

        Returns
        -------
        NotificationPage

        Raises
        ------
        NotificationBackendError
            If the request fails or the body is not a notification page.
        """
        data = await self._get_data(
            self._notifications_path, params={"page": page, "size": size}
        )

        try:
            content = data["content"]
            notifications = [Notification.from_payload(item) for item in content]
            total = int(data.get("totalElements", len(notifications)))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise NotificationBackendError(
                f"Malformed notification page: {type(e).__name__}"
            ) from e

        return NotificationPage(notifications=notifications, total=total)

    async def get_unread_count(self) -> int:
        """Retrieve the backend's unread count.

        Raises
        ------
        NotificationBackendError
            If the request fails or the body is not a number.
        """
        data = await self._get_data(self._unread_count_path)

        if isinstance(data, bool) or not isinstance(data, int):
            raise NotificationBackendError(f"Malformed unread count: {data!r}")

        return data

    async def mark_as_read(self, notification_id: str) -> bool:
        return await self._send_action(
            "PATCH", f"{self._notifications_path}/{notification_id}/read", "mark as read"
        )

    async def mark_all_as_read(self) -> bool:
        return await self._send_action("PATCH", self._read_all_path, "mark all as read")

    async def delete(self, notification_id: str) -> bool:
        return await self._send_action(
            "DELETE", f"{self._notifications_path}/{notification_id}", "delete notification"
        )

    async def _get_data(self, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._auth_service.request("GET", path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, AuthenticationError, ValueError) as e:
            raise NotificationBackendError(
                f"GET {path} failed: {type(e).__name__}: {e}"
            ) from e

        if isinstance(body, dict) and "data" in body:
            return body["data"]

        return body

    async def _send_action(self, method: str, path: str, action: str) -> bool:
        try:
            response = await self._auth_service.request(method, path)
        except httpx.HTTPError as e:
            logger.error(f"🔴 Failed to {action}: {type(e).__name__}: {e}")
            return False

        if not response.is_success:
            logger.error(f"🔴 Failed to {action}: backend answered {response.status_code}")
            return False

        return True
