"""
tests/test_coordinator.py
Sync coordinator: ordered partial drains, reentrancy guard, event handling,
connectivity monitor. Async code is driven with asyncio.run().
"""

import asyncio
import threading
from dataclasses import asdict
from unittest.mock import MagicMock

import pytest

from triage.models.record import QueuedRequest, SOSRequest
from triage.offline.connectivity import ConnectivityMonitor
from triage.offline.coordinator import (
    ConnectivityChanged,
    SyncCoordinator,
    SyncSummary,
    Tick,
    new_local_id,
)
from triage.offline.offline_queue import OfflineQueue
from triage.remote.base import StoreError
from triage.remote.memory_store import MemoryStore
from triage.storage.file_slot import FileSlot


class FlakyStore(MemoryStore):
    """MemoryStore that rejects any request whose message is in `failing`."""

    def __init__(self, failing=()):
        super().__init__()
        self.failing = set(failing)
        self.submitted = []

    def submit(self, request):
        if request.message in self.failing:
            raise StoreError(f"rejected {request.message}")
        self.submitted.append(request.message)
        return super().submit(request)


def _request(message: str) -> SOSRequest:
    return SOSRequest(
        name           = "Ana",
        age            = 34,
        phone          = "5551234567",
        message        = message,
        coords         = "12.97, 77.59",
        created_at     = "2024-01-01T12:00:00.000Z",
        last_modified  = 1704110400000,
        priority       = "high",
        category       = "medical",
        priority_score = 0.7,
    )


def _coordinator(tmp_path, store, messages=(), online=True, notify=None):
    queue = OfflineQueue(FileSlot(directory=tmp_path))
    offline = SyncCoordinator(queue, store, online=False)
    for m in messages:
        offline.enqueue(_request(m))
    return SyncCoordinator(queue, store, notify=notify, online=online), queue


class TestDrain:
    def test_stops_at_first_failure_and_keeps_tail(self, tmp_path):
        store = FlakyStore(failing={"B"})
        coord, queue = _coordinator(tmp_path, store, ["A", "B", "C"])

        summary = asyncio.run(coord.drain())

        assert store.submitted == ["A"]
        assert [i.message for i in queue.load()] == ["B", "C"]
        assert [i.message for i in coord.state.queue] == ["B", "C"]
        assert summary == SyncSummary(synced=1, total=3)
        assert not summary.complete
        assert summary.message == "1 of 3 requests synced. Remaining will retry automatically."

    def test_redrain_after_recovery_empties_queue_in_order(self, tmp_path):
        store = FlakyStore(failing={"B"})
        coord, queue = _coordinator(tmp_path, store, ["A", "B", "C"])
        asyncio.run(coord.drain())

        store.failing.clear()
        summary = asyncio.run(coord.drain())

        assert store.submitted == ["A", "B", "C"]
        assert queue.load() == []
        assert coord.queue_length == 0
        assert summary.message == "2 queued requests synced successfully"

    def test_single_item_message_is_singular(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore(), ["A"])
        assert asyncio.run(coord.drain()).message == "1 queued request synced successfully"

    def test_first_item_failing_syncs_nothing(self, tmp_path):
        store = FlakyStore(failing={"A"})
        coord, queue = _coordinator(tmp_path, store, ["A", "B"])
        assert asyncio.run(coord.drain()) is None
        assert store.submitted == []
        assert [i.message for i in queue.load()] == ["A", "B"]

    def test_offline_drain_is_noop(self, tmp_path):
        store = FlakyStore()
        coord, queue = _coordinator(tmp_path, store, ["A"], online=False)
        assert asyncio.run(coord.drain()) is None
        assert store.submitted == []
        assert len(queue) == 1

    def test_empty_queue_returns_none(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore())
        assert asyncio.run(coord.drain()) is None

    def test_overlapping_drains_submit_each_item_once(self, tmp_path):
        store = FlakyStore()
        coord, queue = _coordinator(tmp_path, store, ["A", "B"])

        async def both():
            return await asyncio.gather(coord.drain(), coord.drain())

        first, second = asyncio.run(both())
        assert first == SyncSummary(synced=2, total=2)
        assert second is None
        assert store.submitted == ["A", "B"]
        assert not coord.syncing

    def test_syncing_flag_cleared_after_failure(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore(failing={"A"}), ["A"])
        asyncio.run(coord.drain())
        assert not coord.syncing

    def test_notify_receives_summary(self, tmp_path):
        notify = MagicMock()
        coord, _ = _coordinator(tmp_path, FlakyStore(), ["A"], notify=notify)
        summary = asyncio.run(coord.drain())
        notify.assert_called_once_with(summary)

    def test_notify_failure_does_not_break_drain(self, tmp_path):
        notify = MagicMock(side_effect=RuntimeError("toast failed"))
        coord, queue = _coordinator(tmp_path, FlakyStore(), ["A"], notify=notify)
        assert asyncio.run(coord.drain()).synced == 1
        assert queue.load() == []

    def test_enqueue_during_drain_is_kept(self, tmp_path):
        release = threading.Event()

        class SlowStore(FlakyStore):
            def submit(self, request):
                release.wait(timeout=5)
                return super().submit(request)

        store = SlowStore()
        coord, queue = _coordinator(tmp_path, store, ["A"])

        async def enqueue_while_draining():
            await asyncio.sleep(0)
            coord.enqueue(_request("late"))
            release.set()

        async def both():
            return await asyncio.gather(coord.drain(), enqueue_while_draining())

        summary, _ = asyncio.run(both())
        assert summary == SyncSummary(synced=1, total=1)
        assert store.submitted == ["A"]
        assert [i.message for i in queue.load()] == ["late"]
        assert [i.message for i in coord.state.queue] == ["late"]

    def test_untried_duplicate_id_stays_queued(self, tmp_path):
        store = FlakyStore(failing={"B"})
        coord, queue = _coordinator(tmp_path, store)
        queue.save([
            QueuedRequest(**{**asdict(_request(m)), "id": qid})
            for m, qid in [("A", "queued_1_dup"), ("B", "queued_2_b"), ("C", "queued_1_dup")]
        ])

        summary = asyncio.run(coord.drain())

        assert summary == SyncSummary(synced=1, total=3)
        assert [i.message for i in queue.load()] == ["B", "C"]


class TestEvents:
    def test_reconnect_triggers_drain(self, tmp_path):
        store = FlakyStore()
        coord, _ = _coordinator(tmp_path, store, ["A"], online=False)
        summary = asyncio.run(coord.handle(ConnectivityChanged(True)))
        assert coord.online
        assert summary.synced == 1

    def test_online_to_online_does_not_drain(self, tmp_path):
        store = FlakyStore()
        coord, _ = _coordinator(tmp_path, store, ["A"], online=True)
        assert asyncio.run(coord.handle(ConnectivityChanged(True))) is None
        assert store.submitted == []

    def test_going_offline(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore(), online=True)
        asyncio.run(coord.handle(ConnectivityChanged(False)))
        assert not coord.online

    def test_tick_drains_when_online_with_items(self, tmp_path):
        store = FlakyStore()
        coord, _ = _coordinator(tmp_path, store, ["A"], online=True)
        assert asyncio.run(coord.handle(Tick())).synced == 1

    def test_tick_offline_does_nothing(self, tmp_path):
        store = FlakyStore()
        coord, _ = _coordinator(tmp_path, store, ["A"], online=False)
        assert asyncio.run(coord.handle(Tick())) is None
        assert store.submitted == []

    def test_unknown_event_rejected(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore())
        with pytest.raises(TypeError):
            asyncio.run(coord.handle("reconnected"))

    def test_run_consumes_posted_events_until_stop(self, tmp_path):
        store = FlakyStore()
        coord, queue = _coordinator(tmp_path, store, ["A", "B"], online=False)

        async def main():
            coord.post(ConnectivityChanged(True))
            coord.stop()
            await coord.run()

        asyncio.run(main())
        assert store.submitted == ["A", "B"]
        assert queue.load() == []


class TestEnqueue:
    def test_local_id_format(self):
        local_id = new_local_id()
        prefix, ms, suffix = local_id.split("_")
        assert prefix == "queued"
        assert ms.isdigit()
        assert len(suffix) == 8

    def test_enqueue_persists_copy_with_local_id(self, tmp_path):
        coord, queue = _coordinator(tmp_path, FlakyStore(), online=False)
        original = _request("A")
        queued = coord.enqueue(original)

        assert queued.id.startswith("queued_")
        assert original.id == ""
        assert queued.message == "A"
        assert queued.priority == "high"
        assert [i.id for i in queue.load()] == [queued.id]
        assert coord.queue_length == 1

    def test_state_is_a_snapshot(self, tmp_path):
        coord, _ = _coordinator(tmp_path, FlakyStore(), ["A"])
        coord.state.queue.clear()
        assert coord.queue_length == 1


class TestConnectivityMonitor:
    def test_first_probe_always_posts(self):
        store = MemoryStore()
        coordinator = MagicMock()
        monitor = ConnectivityMonitor(store, coordinator)
        assert asyncio.run(monitor.probe_once()) is True
        coordinator.post.assert_called_once_with(ConnectivityChanged(True))

    def test_posts_only_on_change(self):
        store = MemoryStore()
        coordinator = MagicMock()
        monitor = ConnectivityMonitor(store, coordinator)

        asyncio.run(monitor.probe_once())
        asyncio.run(monitor.probe_once())
        store.available = False
        asyncio.run(monitor.probe_once())

        assert coordinator.post.call_count == 2
        coordinator.post.assert_called_with(ConnectivityChanged(False))
        assert monitor.last_known is False
