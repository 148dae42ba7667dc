"""
triage/offline/connectivity.py
Connectivity signal for the sync coordinator.

Polls RemoteStore.is_available() and posts ConnectivityChanged to the
coordinator only when the answer flips. The first probe always posts, so a
process that starts online drains whatever was left queued last time.
"""

import asyncio
import logging
from typing import Optional

from triage.offline.coordinator import ConnectivityChanged, SyncCoordinator
from triage.remote.base import RemoteStore

logger = logging.getLogger(__name__)

DEFAULT_PROBE_INTERVAL_SEC = 10.0


class ConnectivityMonitor:

    def __init__(
        self,
        store:        RemoteStore,
        coordinator:  SyncCoordinator,
        interval_sec: float = DEFAULT_PROBE_INTERVAL_SEC,
    ):
        self.store        = store
        self.coordinator  = coordinator
        self.interval_sec = interval_sec
        self.last_known: Optional[bool] = None

    async def probe_once(self) -> bool:
        online = await asyncio.to_thread(self.store.is_available)
        if online != self.last_known:
            logger.info(f"Connectivity: {'online' if online else 'offline'}")
            self.last_known = online
            self.coordinator.post(ConnectivityChanged(online))
        return online

    async def run(self) -> None:
        while True:
            await self.probe_once()
            await asyncio.sleep(self.interval_sec)
