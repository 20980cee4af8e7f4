import asyncio
from typing import Callable

from loguru import logger

from authentication.domain.entities import AuthSession

from ..domain.entities import ConnectionStatus, Notification
from .connection import NotificationConnectionManager
from .fanout import Subscription
from .store import NotificationSnapshot, NotificationStore


class NotificationProvider:
    """Shared notification context of one application session.

    Wires the connection manager's decoded notifications into the store and
    gives every UI surface the same store, status and actions, so only one
    stream is ever opened per session. Create one per application and pass
    it around by dependency injection.
    """

    def __init__(
        self, store: NotificationStore, connection: NotificationConnectionManager
    ) -> None:
        self.store = store
        self.connection = connection
        self._session: AuthSession | None = None
        self._stream_subscription: Subscription | None = None
        self._expiry: asyncio.Task | None = None

    @property
    def active_session(self) -> AuthSession | None:
        return self._session

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    async def start(self, session: AuthSession | None) -> None:
        """Connect the stream and load notifications for a session.

        Does nothing without a session carrying a user id and token. A
        previously started session is stopped first.

        Parameters
        ----------
        session : AuthSession | None
            Authenticated session to serve.
        """
        if session is None or not session.user_id or not session.access_token:
            logger.warning("⚠️ Notification provider not started: no authenticated session")
            return

        if self._session is not None:
            await self.stop()

        self._session = session
        self._stream_subscription = self.connection.on_notification(self.store.receive)

        logger.info(f"🔧 Starting notifications for user {session.user_id}")
        await self.connection.connect(session.user_id, session.access_token)
        await self.store.load()

    async def stop(self) -> None:
        """Disconnect the stream and discard session state. Safe to call repeatedly."""
        if self._stream_subscription is not None:
            self._stream_subscription()
            self._stream_subscription = None

        await self.connection.disconnect()

        if self._session is not None:
            logger.info(f"👋 Stopped notifications for user {self._session.user_id}")
            self._session = None
            self.store.clear()

    def expire(self, session: AuthSession) -> None:
        """Tear the served session down after the backend refused to renew it.

        Called synchronously by the session service, possibly from inside the
        stream task, so the teardown runs as its own task.
        """
        if self._session is None or self._session.user_id != session.user_id:
            return

        logger.warning(f"🔒 Session of user {session.user_id} expired, stopping notifications")
        self._expiry = asyncio.create_task(self.stop(), name="notification-session-expiry")

    async def reconnect(self) -> None:
        """Restart the stream of the served session right away."""
        if self._session is None:
            logger.warning("⚠️ Nothing to reconnect: no active notification session")
            return

        await self.connection.reconnect()

    async def refresh(self) -> bool:
        return await self.store.load()

    async def mark_as_read(self, notification_id: str) -> None:
        await self.store.mark_as_read(notification_id)

    async def mark_all_as_read(self) -> None:
        await self.store.mark_all_as_read()

    async def delete_notification(self, notification_id: str) -> None:
        await self.store.delete_notification(notification_id)

    def on_status_change(
        self, callback: Callable[[ConnectionStatus], None], emit_current: bool = True
    ) -> Subscription:
        return self.connection.on_status_change(callback, emit_current=emit_current)

    def on_notification(self, callback: Callable[[Notification], None]) -> Subscription:
        return self.connection.on_notification(callback)

    def subscribe(self, callback: Callable[[NotificationSnapshot], None]) -> Subscription:
        return self.store.subscribe(callback)
