"""
triage/offline/offline_queue.py
Durable FIFO of requests created while offline.

The whole queue is one JSON array under one fixed slot key. Every mutation
is a full load-modify-save, so there is a single writer per slot: the
coordinator's drain and its enqueue path. A crash between load and save can
duplicate or drop unsent items; nothing stronger is promised.

Failure policy:
  load() never raises — missing, unreadable or non-list data → [].
         Entries that do not decode are skipped and logged.
  save() never raises — failures are logged and the queue keeps its
         last saved state. Retry-on-reconnect covers the gap.
"""

import json
import logging
import sqlite3
from typing import List, Sequence

from triage.models.record import QueuedRequest
from triage.remote.document import from_document, to_document
from triage.storage.base import KeyValueSlot

logger = logging.getLogger(__name__)

QUEUE_KEY = 'sos.queue.v1'


class OfflineQueue:

    def __init__(self, slot: KeyValueSlot, key: str = QUEUE_KEY):
        self.slot = slot
        self.key  = key

    def load(self) -> List[QueuedRequest]:
        try:
            raw = self.slot.read(self.key)
        except (OSError, sqlite3.Error, UnicodeDecodeError) as e:
            logger.warning(f"Queue load failed ({self.key}): {e}")
            return []
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Queue slot {self.key} holds invalid JSON: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Queue slot {self.key} holds {type(data).__name__}, expected list")
            return []

        items: List[QueuedRequest] = []
        for i, doc in enumerate(data):
            try:
                items.append(from_document(doc, QueuedRequest))
            except ValueError as e:
                logger.warning(f"Skipping queue entry {i}: {e}")
        return items

    def save(self, items: Sequence[QueuedRequest]) -> None:
        try:
            payload = json.dumps([to_document(item) for item in items])
            self.slot.write(self.key, payload)
        except (OSError, sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Queue save failed ({self.key}, {len(items)} items): {e}")
            return
        logger.debug(f"Queue saved: {len(items)} item(s)")

    def append(self, item: QueuedRequest) -> None:
        items = self.load()
        items.append(item)
        self.save(items)
        logger.info(f"Queued request {item.id} (queue length {len(items)})")

    def clear(self) -> None:
        self.save([])

    def __len__(self) -> int:
        return len(self.load())
