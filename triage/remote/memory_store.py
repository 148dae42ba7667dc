"""
triage/remote/memory_store.py
In-process RemoteStore. Used when no database_url is configured (local
mode) and as the store double in tests. Documents live in a dict keyed by
generated id; nothing survives the process.

Set `available = False` to simulate an outage: writes then raise
StoreError and is_available() reports offline.
"""

import logging
from typing import Any, Dict, List

from triage.models.record import SOSRequest
from triage.remote.base import RemoteStore, StoreError
from triage.remote.document import (
    from_document,
    new_push_key,
    now_ms,
    sort_newest_first,
    to_document,
)

logger = logging.getLogger(__name__)


class MemoryStore(RemoteStore):

    def __init__(self):
        self.available = True
        self._docs: Dict[str, Dict[str, Any]] = {}

    def is_available(self) -> bool:
        return self.available

    def _check(self) -> None:
        if not self.available:
            raise StoreError("in-memory store marked unavailable")

    def submit(self, request: SOSRequest) -> str:
        self._check()
        key = new_push_key()
        doc = to_document(request)
        doc['id'] = key
        doc['lastModified'] = now_ms()
        self._docs[key] = doc
        logger.info(f"Stored request {key} (priority={request.priority})")
        return key

    def update(self, request_id: str, patch: Dict[str, Any]) -> None:
        self._check()
        if request_id not in self._docs:
            raise StoreError(f"request not found: {request_id}")
        self._docs[request_id].update(patch)
        self._docs[request_id]['lastModified'] = now_ms()

    def delete(self, request_id: str) -> None:
        self._check()
        self._docs.pop(request_id, None)

    def list_requests(self) -> List[SOSRequest]:
        self._check()
        return sort_newest_first([from_document(d) for d in self._docs.values()])

    def clear_all(self) -> None:
        self._check()
        self._docs.clear()
