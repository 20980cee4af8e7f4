"""Tests for the session-wide notification store."""
import asyncio

import pytest

from notifications.domain.entities import Notification
from notifications.domain.exceptions import NotificationActionError


def unread_in(store):
    return sum(1 for n in store.notifications if not n.read)


class TestLoad:
    """Bulk fetch from the backend."""

    @pytest.mark.asyncio
    async def test_load_replaces_state_in_server_order(self, store, repository):
        repository.notifications = [
            Notification(id="3"),
            Notification(id="2", read=True),
            Notification(id="1"),
        ]

        assert await store.load() is True

        assert [n.id for n in store.notifications] == ["3", "2", "1"]
        assert store.unread_count == 2
        assert store.server_unread_count == 2
        assert store.loading is False
        assert ("get_notifications", 0, 20) in repository.calls

    @pytest.mark.asyncio
    async def test_load_drops_duplicate_ids_in_page(self, store, repository):
        repository.notifications = [Notification(id="1"), Notification(id="1")]

        await store.load()

        assert [n.id for n in store.notifications] == ["1"]
        assert store.unread_count == 1

    @pytest.mark.asyncio
    async def test_unread_count_follows_collection_not_backend(self, store, repository):
        """The backend count is kept apart when it disagrees with the page."""
        repository.notifications = [Notification(id="1")]
        repository.unread_count = 40

        await store.load()

        assert store.unread_count == 1
        assert store.server_unread_count == 40

    @pytest.mark.asyncio
    async def test_failed_load_keeps_previous_state(self, store, repository):
        repository.notifications = [Notification(id="1")]
        await store.load()
        repository.fail_queries = True
        snapshots = []
        store.subscribe(snapshots.append)

        assert await store.load() is False

        assert [n.id for n in store.notifications] == ["1"]
        assert store.unread_count == 1
        assert store.loading is False
        assert [s.loading for s in snapshots] == [True, False]

    @pytest.mark.asyncio
    async def test_loading_flag_while_fetch_in_flight(self, store, repository):
        repository.gate = asyncio.Event()

        task = asyncio.create_task(store.load())
        await asyncio.sleep(0)

        assert store.loading is True

        repository.gate.set()
        await task

        assert store.loading is False

    @pytest.mark.asyncio
    async def test_notifications_streamed_during_load_are_kept(self, store, repository):
        """A notification arriving mid-fetch stays ahead of the page."""
        repository.notifications = [Notification(id="2"), Notification(id="1")]
        repository.gate = asyncio.Event()

        task = asyncio.create_task(store.load())
        await asyncio.sleep(0)
        store.receive(Notification(id="3"))
        store.receive(Notification(id="2"))
        repository.gate.set()
        await task

        assert [n.id for n in store.notifications] == ["3", "2", "1"]
        assert store.unread_count == 3


class TestReceive:
    """Notifications pushed by the stream."""

    def test_receive_prepends_and_counts(self, store):
        store.receive(Notification(id="1"))
        store.receive(Notification(id="2", read=True))
        store.receive(Notification(id="3"))

        assert [n.id for n in store.notifications] == ["3", "2", "1"]
        assert store.unread_count == 2

    def test_receive_ignores_known_id(self, store):
        assert store.receive(Notification(id="1", title="first")) is True
        assert store.receive(Notification(id="1", title="again")) is False

        assert len(store.notifications) == 1
        assert store.notifications[0].title == "first"
        assert store.unread_count == 1

    def test_receive_notifies_subscribers(self, store):
        snapshots = []
        store.subscribe(snapshots.append)

        store.receive(Notification(id="1"))

        assert len(snapshots) == 1
        assert snapshots[0].unread_count == 1
        assert snapshots[0].notifications[0].id == "1"


class TestActions:
    """Read and delete actions acknowledged by the backend."""

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, store, repository):
        for i in range(3):
            store.receive(Notification(id=str(i)))
        assert store.unread_count == 3

        await store.mark_all_as_read()

        assert store.unread_count == 0
        assert all(n.read for n in store.notifications)
        assert ("mark_all_as_read",) in repository.calls

    @pytest.mark.asyncio
    async def test_delete_unread_notification(self, store):
        store.receive(Notification(id="4"))
        store.receive(Notification(id="5"))

        await store.delete_notification("5")

        assert [n.id for n in store.notifications] == ["4"]
        assert store.unread_count == 1

    @pytest.mark.asyncio
    async def test_delete_read_notification_keeps_count(self, store):
        store.receive(Notification(id="4"))
        store.receive(Notification(id="5", read=True))

        await store.delete_notification("5")

        assert store.unread_count == 1

    @pytest.mark.asyncio
    async def test_delete_last_notification_never_goes_negative(self, store):
        store.receive(Notification(id="5"))

        await store.delete_notification("5")
        await store.delete_notification("5")

        assert store.notifications == ()
        assert store.unread_count == 0

    @pytest.mark.asyncio
    async def test_mark_as_read_is_idempotent(self, store):
        store.receive(Notification(id="1"))
        store.receive(Notification(id="2"))

        await store.mark_as_read("1")
        await store.mark_as_read("1")

        assert store.get("1").read is True
        assert store.unread_count == 1

    @pytest.mark.asyncio
    async def test_mark_unknown_id_changes_nothing(self, store):
        store.receive(Notification(id="1"))

        await store.mark_as_read("missing")

        assert store.unread_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action, args",
        [
            ("mark_as_read", ("1",)),
            ("mark_all_as_read", ()),
            ("delete_notification", ("1",)),
        ],
    )
    async def test_rejected_action_leaves_state_untouched(
        self, store, repository, action, args
    ):
        store.receive(Notification(id="1"))
        repository.acknowledge = False
        before = store.snapshot()

        with pytest.raises(NotificationActionError):
            await getattr(store, action)(*args)

        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_snapshots_are_not_mutated_by_later_changes(self, store):
        store.receive(Notification(id="1"))
        snapshot = store.snapshot()

        await store.mark_as_read("1")

        assert snapshot.notifications[0].read is False
        assert snapshot.unread_count == 1

    @pytest.mark.asyncio
    async def test_unread_invariant_through_mixed_operations(self, store, repository):
        repository.notifications = [Notification(id=str(i), read=i % 2 == 0) for i in range(6)]
        await store.load()

        store.receive(Notification(id="10"))
        await store.mark_as_read("1")
        await store.delete_notification("3")
        store.receive(Notification(id="11", read=True))
        await store.delete_notification("0")

        assert store.unread_count == unread_in(store)

    def test_clear_discards_everything(self, store):
        store.receive(Notification(id="1"))

        store.clear()

        assert store.notifications == ()
        assert store.unread_count == 0
        assert store.server_unread_count is None
