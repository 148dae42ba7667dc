"""
triage/offline/coordinator.py
Replays queued requests once connectivity returns.

STATES:
  Idle      — waiting for an event
  Draining  — submitting queued items front-to-back (state.syncing = True)

EVENTS (consumed one at a time by run()):
  ConnectivityChanged(online)  offline → online triggers a drain
  Tick()                       every interval_sec; drains if online and queue non-empty

DRAIN:
  load queue → submit each item in stored order, awaiting one at a time →
  STOP at the first failure so no later item overtakes an earlier one →
  save the unprocessed tail → report "all synced" or "N of M synced".
  state.syncing guards against overlapping drains (a tick landing while a
  reconnect drain is still awaiting the store).

Delivery is ordered at-least-once. If the store writes a request but the
acknowledgment is lost, the item stays queued and is submitted again on the
next drain; there is no deduplication here.
"""

import asyncio
import logging
import secrets
from contextlib import suppress
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional, Union

from triage.models.record import QueuedRequest, SOSRequest
from triage.offline.offline_queue import OfflineQueue
from triage.remote.base import RemoteStore
from triage.remote.document import now_ms

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SEC = 5.0


# ── STATE & EVENTS ───────────────────────────────────────────

@dataclass
class SyncState:
    queue:   List[QueuedRequest] = field(default_factory=list)
    online:  bool                = False
    syncing: bool                = False


@dataclass(frozen=True)
class ConnectivityChanged:
    online: bool


@dataclass(frozen=True)
class Tick:
    pass


SyncEvent = Union[ConnectivityChanged, Tick]

_STOP = object()


@dataclass(frozen=True)
class SyncSummary:
    """Result of a drain that synced at least one item."""
    synced: int
    total:  int

    @property
    def complete(self) -> bool:
        return self.synced == self.total

    @property
    def message(self) -> str:
        if self.complete:
            plural = 's' if self.synced > 1 else ''
            return f"{self.synced} queued request{plural} synced successfully"
        return (
            f"{self.synced} of {self.total} requests synced. "
            f"Remaining will retry automatically."
        )


# ── COORDINATOR ──────────────────────────────────────────────

class SyncCoordinator:

    def __init__(
        self,
        queue:        OfflineQueue,
        store:        RemoteStore,
        notify:       Optional[Callable[[SyncSummary], None]] = None,
        interval_sec: float                                   = DEFAULT_SYNC_INTERVAL_SEC,
        online:       bool                                    = False,
    ):
        self._queue       = queue
        self._store       = store
        self._notify      = notify
        self.interval_sec = interval_sec
        self._state       = SyncState(queue=queue.load(), online=online)
        self._events: asyncio.Queue = asyncio.Queue()

    # ── ACCESSORS ────────────────────────────────────────────
    @property
    def state(self) -> SyncState:
        """Snapshot copy — mutate through events, not through this."""
        return SyncState(
            queue   = list(self._state.queue),
            online  = self._state.online,
            syncing = self._state.syncing,
        )

    @property
    def online(self) -> bool:
        return self._state.online

    @property
    def syncing(self) -> bool:
        return self._state.syncing

    @property
    def queue_length(self) -> int:
        return len(self._state.queue)

    # ── QUEUEING ─────────────────────────────────────────────
    def enqueue(self, request: SOSRequest) -> QueuedRequest:
        """Persist request at the tail of the offline queue under a fresh local id."""
        queued = QueuedRequest(**{**asdict(request), 'id': new_local_id()})
        self._queue.append(queued)
        self._state.queue = self._queue.load()
        return queued

    # ── EVENTS ───────────────────────────────────────────────
    def post(self, event: SyncEvent) -> None:
        self._events.put_nowait(event)

    def stop(self) -> None:
        self._events.put_nowait(_STOP)

    async def handle(self, event: SyncEvent) -> Optional[SyncSummary]:
        if isinstance(event, ConnectivityChanged):
            was_online = self._state.online
            self._state.online = event.online
            if event.online and not was_online:
                logger.info("Connectivity regained — draining offline queue")
                return await self.drain()
            if was_online and not event.online:
                logger.info("Connectivity lost — new requests will be queued")
            return None

        if isinstance(event, Tick):
            if self._state.online and self._state.queue:
                return await self.drain()
            return None

        raise TypeError(f"Unknown sync event: {event!r}")

    async def run(self) -> None:
        """Consume events until stop(). Also drives the periodic Tick."""
        ticker = asyncio.create_task(self._tick_loop())
        logger.info(f"Sync coordinator started (tick every {self.interval_sec}s)")
        try:
            while True:
                event = await self._events.get()
                if event is _STOP:
                    break
                try:
                    await self.handle(event)
                except Exception as e:
                    logger.error(f"Sync event {event!r} failed: {e}", exc_info=True)
        finally:
            ticker.cancel()
            with suppress(asyncio.CancelledError):
                await ticker
            logger.info("Sync coordinator stopped")

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.post(Tick())

    # ── DRAIN ────────────────────────────────────────────────
    async def drain(self) -> Optional[SyncSummary]:
        """
        One pass over the queue. Returns a SyncSummary if anything was
        synced, else None (nothing queued, nothing succeeded, offline,
        or another drain already running).
        """
        if self._state.syncing:
            logger.debug("Drain already in progress — skipping")
            return None
        if not self._state.online:
            return None

        self._state.syncing = True
        try:
            items = self._queue.load()
            synced: List[QueuedRequest] = []

            for item in items:
                try:
                    remote_id = await asyncio.to_thread(self._store.submit, item)
                except Exception as e:
                    logger.warning(f"Sync stopped at {item.id}: {e}")
                    break
                synced.append(item)
                logger.info(f"Synced {item.id} → {remote_id}")

            # Reload: requests may have been enqueued while the store was awaited
            remaining = _without_synced(self._queue.load(), synced)
            self._queue.save(remaining)
            self._state.queue = remaining

            if not synced:
                return None

            summary = SyncSummary(synced=len(synced), total=len(items))
            logger.info(summary.message)
            if self._notify is not None:
                try:
                    self._notify(summary)
                except Exception as e:
                    logger.error(f"Sync notify callback failed: {e}", exc_info=True)
            return summary
        finally:
            self._state.syncing = False


def new_local_id() -> str:
    return f"queued_{now_ms()}_{secrets.token_hex(4)}"


def _without_synced(
    current: List[QueuedRequest],
    synced:  List[QueuedRequest],
) -> List[QueuedRequest]:
    """
    Drop the synced prefix from the reloaded queue, one entry per synced
    item. A duplicate id further back was never attempted and stays.
    """
    pending = [item.id for item in synced]
    remaining: List[QueuedRequest] = []
    for item in current:
        if pending and item.id == pending[0]:
            pending.pop(0)
            continue
        remaining.append(item)
    return remaining
