import asyncio
from typing import Callable

from loguru import logger

from authentication.domain.exceptions import AuthenticationError
from core.infrastructure.factory import get_data_sanitizer

from ..domain.entities import ConnectionStatus, Notification
from ..domain.exceptions import StreamConnectionError
from ..infrastructure.decoder import SSEFrameDecoder
from .fanout import ListenerRegistry, Subscription
from .policies import FixedIntervalPolicy, ReconnectPolicy
from .ports import NotificationStreamSource


class NotificationConnectionManager:
    """Owns the single notification stream of a session.

    `connect` starts one supervising task which runs the connection state
    machine: CONNECTING until the first chunk arrives, CONNECTED while reading,
    ERROR after any failure, then CONNECTING again once the reconnect policy's
    delay has elapsed. `disconnect` cancels the task, which aborts an in-flight
    read or a pending backoff sleep, and leaves the manager DISCONNECTED.
    `connect` and `disconnect` are serialized, so at most one supervising task
    exists at any time. A stream refused because the session expired is not
    retried.
    """

    def __init__(
        self,
        stream_source: NotificationStreamSource,
        reconnect_policy: ReconnectPolicy | None = None,
        auto_reconnect: bool = True,
        decoder_factory: Callable[[], SSEFrameDecoder] = SSEFrameDecoder,
    ) -> None:
        self.reconnect_policy = reconnect_policy or FixedIntervalPolicy()
        self.auto_reconnect = auto_reconnect
        self._stream_source = stream_source
        self._decoder_factory = decoder_factory
        self._status = ConnectionStatus.DISCONNECTED
        self._task: asyncio.Task | None = None
        self._lifecycle_lock = asyncio.Lock()
        self._credentials: tuple[str, str] | None = None
        self._failures = 0
        self._status_listeners: ListenerRegistry[ConnectionStatus] = ListenerRegistry(
            "connection status"
        )
        self._notification_listeners: ListenerRegistry[Notification] = ListenerRegistry(
            "notification"
        )

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def is_running(self) -> bool:
        """True while a connection attempt, read loop or backoff is pending."""
        return self._task is not None and not self._task.done()

    @property
    def failures(self) -> int:
        """Consecutive failed connections since the last successful read."""
        return self._failures

    def on_status_change(
        self, callback: Callable[[ConnectionStatus], None], emit_current: bool = True
    ) -> Subscription:
        """Subscribe to status transitions.

        Parameters
        ----------
        callback : Callable[[ConnectionStatus], None]
            Called with every new status.
        emit_current : bool, default=True
            Call `callback` immediately with the current status.

        Returns
        -------
        Subscription
        """
        subscription = self._status_listeners.subscribe(callback)
        if emit_current:
            callback(self._status)
        return subscription

    def on_notification(self, callback: Callable[[Notification], None]) -> Subscription:
        """Subscribe to every notification decoded from the stream."""
        return self._notification_listeners.subscribe(callback)

    async def connect(self, user_id: str | None, access_token: str | None) -> None:
        """Open the notification stream for a user.

        Without a user or token nothing happens. Any previous connection of
        this manager is torn down before the new one starts.

        Parameters
        ----------
        user_id : str | None
            Recipient whose stream is opened.
        access_token : str | None
            Bearer token for the stream request.
        """
        if not user_id or not access_token:
            logger.warning("⚠️ Notification stream not started: no authenticated user")
            return

        async with self._lifecycle_lock:
            await self._cancel_supervisor()

            self._credentials = (str(user_id), access_token)
            self._failures = 0
            self._set_status(ConnectionStatus.CONNECTING)
            self._task = asyncio.create_task(
                self._supervise(*self._credentials),
                name=f"notification-stream:{user_id}",
            )

    async def reconnect(self) -> None:
        """Restart the stream immediately with the last credentials."""
        if self._credentials is None:
            logger.warning("⚠️ Nothing to reconnect: stream was never connected")
            return

        await self.connect(*self._credentials)

    async def disconnect(self) -> None:
        """Abort the stream and any pending reconnect. Safe to call repeatedly."""
        async with self._lifecycle_lock:
            if await self._cancel_supervisor():
                logger.info("🔌 Notification stream disconnected")

            self._set_status(ConnectionStatus.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Wait until the supervising task ends (gave up, or was disconnected)."""
        if self._task is not None:
            await asyncio.wait([self._task])

    async def _cancel_supervisor(self) -> bool:
        task, self._task = self._task, None
        if task is None or task.done():
            return False

        task.cancel()
        if task is asyncio.current_task():
            return True

        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise

        return True

    async def _supervise(self, user_id: str, access_token: str) -> None:
        sanitizer = get_data_sanitizer()

        with logger.contextualize(stream_user=user_id):
            while True:
                self._set_status(ConnectionStatus.CONNECTING)

                try:
                    await self._read_stream(user_id, access_token)
                except AuthenticationError as e:
                    logger.warning(f"🔒 Notification stream stopped: {e}")
                    self._set_status(ConnectionStatus.ERROR)
                    return
                except StreamConnectionError as e:
                    logger.warning(
                        f"🔴 Notification stream failed: {sanitizer.sanitize_exception_for_logging(e)}"
                    )
                except Exception as e:
                    logger.exception(
                        f"🔴 Unexpected notification stream error: {sanitizer.sanitize_exception_for_logging(e)}"
                    )
                else:
                    logger.warning("🟠 Notification stream closed by server")

                self._set_status(ConnectionStatus.ERROR)

                if not self.auto_reconnect:
                    return

                self._failures += 1
                delay = self.reconnect_policy.next_delay(self._failures)
                if delay is None:
                    logger.error(
                        f"🔴 Giving up on notification stream after {self._failures} failed attempts"
                    )
                    return

                logger.info(
                    f"🔁 Reconnecting notification stream in {delay:.1f}s (attempt {self._failures})"
                )
                await asyncio.sleep(delay)

    async def _read_stream(self, user_id: str, access_token: str) -> None:
        logger.debug(f"🔧 Opening notification stream for user {user_id}")

        async with self._stream_source.open(user_id, access_token) as chunks:
            decoder = self._decoder_factory()

            async for chunk in chunks:
                if self._status is not ConnectionStatus.CONNECTED:
                    self._failures = 0
                    self._set_status(ConnectionStatus.CONNECTED)
                    logger.info(f"🟢 Notification stream connected for user {user_id}")

                for notification in decoder.feed(chunk):
                    logger.debug(f"📨 Received notification {notification.id}")
                    self._notification_listeners.emit(notification)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return

        self._status = status
        self._status_listeners.emit(status)
