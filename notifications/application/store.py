from dataclasses import replace
from typing import Callable, List, Tuple

from loguru import logger
from pydantic import dataclasses

from ..domain.entities import Notification
from ..domain.exceptions import NotificationActionError, NotificationBackendError
from .fanout import ListenerRegistry, Subscription
from .ports import NotificationRepository


@dataclasses.dataclass(frozen=True)
class NotificationSnapshot:
    """Immutable view of the store handed to change listeners.

    Attributes
    ----------
    notifications : Tuple[Notification, ...]
        Notifications, most recent first.
    unread_count : int
        Number of notifications in `notifications` that are not read.
    server_unread_count : int | None
        Unread count reported by the backend on the last successful load.
    loading : bool
        True while a load is in flight.
    """

    notifications: Tuple[Notification, ...]
    unread_count: int
    server_unread_count: int | None
    loading: bool


class NotificationStore:
    """Session-wide notification state kept in step with the backend.

    Read and delete actions are sent to the backend first and applied locally
    only after it acknowledges them. Every local change happens in the
    synchronous section after the last await of an operation, and the unread
    count is recomputed from the collection at that point, so interleaved
    operations always work on the latest state.
    """

    def __init__(self, repository: NotificationRepository, page_size: int = 50) -> None:
        self.page_size = page_size
        self._repository = repository
        self._notifications: List[Notification] = []
        self._unread_count = 0
        self._server_unread_count: int | None = None
        self._pending_loads = 0
        self._changes: ListenerRegistry[NotificationSnapshot] = ListenerRegistry(
            "notification store"
        )

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return tuple(self._notifications)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def server_unread_count(self) -> int | None:
        return self._server_unread_count

    @property
    def loading(self) -> bool:
        return self._pending_loads > 0

    def get(self, notification_id: str) -> Notification | None:
        return next((n for n in self._notifications if n.id == notification_id), None)

    def snapshot(self) -> NotificationSnapshot:
        return NotificationSnapshot(
            notifications=self.notifications,
            unread_count=self._unread_count,
            server_unread_count=self._server_unread_count,
            loading=self.loading,
        )

    def subscribe(self, callback: Callable[[NotificationSnapshot], None]) -> Subscription:
        """Subscribe to store changes.

        Parameters
        ----------
        callback : Callable[[NotificationSnapshot], None]
            Called with a fresh snapshot after every change.

        Returns
        -------
        Subscription
        """
        return self._changes.subscribe(callback)

    async def load(self, page: int = 0, size: int | None = None) -> bool:
        """Fetch a page of notifications and the unread count from the backend.

        Replaces the local collection with the fetched page in server order.
        Notifications streamed in while the fetch was in flight, and absent
        from the page, stay at the front. On failure the previous state is kept.

        Parameters
        ----------
        page : int, default=0
            Zero-based page offset.
        size : int | None, optional
            Page size, defaults to the store's page size.

        Returns
        -------
        bool
            True if local state was refreshed.
        """
        size = size or self.page_size
        ids_before = {n.id for n in self._notifications}

        self._pending_loads += 1
        self._notify()

        try:
            fetched = await self._repository.get_notifications(page, size)
            server_unread_count = await self._repository.get_unread_count()
        except NotificationBackendError as e:
            logger.error(f"🔴 Failed to load notifications: {e}")
            fetched = None
        finally:
            self._pending_loads -= 1

        if fetched is None:
            self._notify()
            return False

        seen = set()
        page_notifications = []
        for notification in fetched.notifications:
            if notification.id not in seen:
                seen.add(notification.id)
                page_notifications.append(notification)

        streamed_meanwhile = [
            n
            for n in self._notifications
            if n.id not in ids_before and n.id not in seen
        ]

        self._notifications = streamed_meanwhile + page_notifications
        self._server_unread_count = server_unread_count
        self._recount()

        if server_unread_count != self._unread_count:
            logger.debug(
                f"Backend reports {server_unread_count} unread notifications, "
                f"{self._unread_count} in the loaded page"
            )

        logger.info(
            f"📥 Loaded {len(page_notifications)} of {fetched.total} notifications"
        )
        self._notify()
        return True

    def receive(self, notification: Notification) -> bool:
        """Add a streamed notification at the front of the collection.

        Parameters
        ----------
        notification : Notification
            Notification decoded from the stream.

        Returns
        -------
        bool
            False if a notification with the same id is already present.
        """
        if self.get(notification.id) is not None:
            logger.debug(f"Ignoring duplicate notification {notification.id}")
            return False

        self._notifications.insert(0, notification)
        self._recount()
        self._notify()
        return True

    async def mark_as_read(self, notification_id: str) -> None:
        """Mark one notification as read on the backend, then locally.

        Raises
        ------
        NotificationActionError
            If the backend did not acknowledge the update.
        """
        if not await self._repository.mark_as_read(notification_id):
            raise NotificationActionError("mark_as_read", notification_id)

        self._notifications = [
            replace(n, read=True) if n.id == notification_id and not n.read else n
            for n in self._notifications
        ]
        self._recount()
        self._notify()

    async def mark_all_as_read(self) -> None:
        """Mark every notification as read on the backend, then locally.

        Raises
        ------
        NotificationActionError
            If the backend did not acknowledge the update.
        """
        if not await self._repository.mark_all_as_read():
            raise NotificationActionError("mark_all_as_read")

        self._notifications = [
            n if n.read else replace(n, read=True) for n in self._notifications
        ]
        self._recount()
        self._notify()

    async def delete_notification(self, notification_id: str) -> None:
        """Delete a notification on the backend, then locally.

        Raises
        ------
        NotificationActionError
            If the backend did not acknowledge the deletion.
        """
        if not await self._repository.delete(notification_id):
            raise NotificationActionError("delete_notification", notification_id)

        self._notifications = [n for n in self._notifications if n.id != notification_id]
        self._recount()
        self._notify()

    def clear(self) -> None:
        """Discard all notifications, used when the session ends."""
        self._notifications = []
        self._server_unread_count = None
        self._recount()
        self._notify()

    def _recount(self) -> None:
        self._unread_count = sum(1 for n in self._notifications if not n.read)

    def _notify(self) -> None:
        self._changes.emit(self.snapshot())
