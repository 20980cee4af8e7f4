import asyncio
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from notifications.application.connection import NotificationConnectionManager
from notifications.application.policies import FixedIntervalPolicy
from notifications.application.ports import (
    NotificationRepository,
    NotificationStreamSource,
)
from notifications.application.provider import NotificationProvider
from notifications.application.store import NotificationStore
from notifications.domain.entities import NotificationPage
from notifications.domain.exceptions import NotificationBackendError

END_OF_STREAM = object()


class FakeNotificationRepository(NotificationRepository):
    """In-memory backend recording every call."""

    def __init__(self, notifications=None, unread_count=None):
        self.notifications = list(notifications or [])
        self.unread_count = unread_count
        self.fail_queries = False
        self.acknowledge = True
        self.gate = None
        self.calls = []

    async def get_notifications(self, page=0, size=20):
        self.calls.append(("get_notifications", page, size))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_queries:
            raise NotificationBackendError("backend unavailable")
        return NotificationPage(
            notifications=list(self.notifications), total=len(self.notifications)
        )

    async def get_unread_count(self):
        self.calls.append(("get_unread_count",))
        if self.fail_queries:
            raise NotificationBackendError("backend unavailable")
        if self.unread_count is not None:
            return self.unread_count
        return sum(1 for n in self.notifications if not n.read)

    async def mark_as_read(self, notification_id):
        self.calls.append(("mark_as_read", notification_id))
        return self.acknowledge

    async def mark_all_as_read(self):
        self.calls.append(("mark_all_as_read",))
        return self.acknowledge

    async def delete(self, notification_id):
        self.calls.append(("delete", notification_id))
        return self.acknowledge


class FakeStreamSource(NotificationStreamSource):
    """Stream source fed by the test through per-connection queues.

    Exceptions queued in `failures` are raised by the next `open` calls.
    """

    def __init__(self):
        self.opened = []
        self.queues = []
        self.failures = []
        self.closed = 0

    @asynccontextmanager
    async def open(self, user_id, access_token):
        self.opened.append((user_id, access_token))
        if self.failures:
            raise self.failures.pop(0)

        queue = asyncio.Queue()
        self.queues.append(queue)
        try:
            yield self._drain(queue)
        finally:
            self.closed += 1

    async def _drain(self, queue):
        while True:
            item = await queue.get()
            if item is END_OF_STREAM:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def push(self, *chunks):
        for chunk in chunks:
            self.queues[-1].put_nowait(chunk)

    def end(self):
        self.queues[-1].put_nowait(END_OF_STREAM)


@pytest.fixture
def wait_until():
    """Poll a condition on the running loop until it holds."""

    async def _wait_until(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met in time")
            await asyncio.sleep(0.005)

    return _wait_until


@pytest.fixture
def repository():
    return FakeNotificationRepository()


@pytest.fixture
def stream_source():
    return FakeStreamSource()


@pytest.fixture
def store(repository):
    return NotificationStore(repository, page_size=20)


@pytest_asyncio.fixture
async def connection(stream_source):
    manager = NotificationConnectionManager(
        stream_source, reconnect_policy=FixedIntervalPolicy(interval=0.01)
    )
    yield manager
    await manager.disconnect()


@pytest_asyncio.fixture
async def provider(store, connection):
    notification_provider = NotificationProvider(store, connection)
    yield notification_provider
    await notification_provider.stop()
