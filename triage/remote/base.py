"""
triage/remote/base.py
Abstract base class for the remote request store.
To add a new backend: subclass RemoteStore and implement the abstract methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from triage.models.record import SOSRequest
from triage.remote.document import now_iso


class StoreError(Exception):
    """Network failure or backend rejection. Safe to retry later."""


class RemoteStore(ABC):
    """
    The hosted store all responders read from.
    Every write method raises StoreError on failure — callers decide
    whether to queue, retry, or surface it.
    Delivery is at-least-once from our side; the store does not dedupe.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """
        Returns True if the store is reachable right now.
        Never raises — used as the connectivity signal.
        """
        ...

    @abstractmethod
    def submit(self, request: SOSRequest) -> str:
        """
        Insert request under a newly generated key and return that key.
        Any local (queued_*) id on the request is replaced by the key.
        """
        ...

    @abstractmethod
    def update(self, request_id: str, patch: Dict[str, Any]) -> None:
        """Patch a subset of document fields in place. Stamps lastModified."""
        ...

    @abstractmethod
    def delete(self, request_id: str) -> None:
        ...

    @abstractmethod
    def list_requests(self) -> List[SOSRequest]:
        """All stored requests, newest createdAt first."""
        ...

    @abstractmethod
    def clear_all(self) -> None:
        """Delete every request. Admin operation."""
        ...

    def set_resolved(self, request_id: str, resolved: bool) -> None:
        """Shared responder mutation: resolve stamps resolvedAt, unresolve clears it."""
        self.update(request_id, {
            'resolved':   resolved,
            'resolvedAt': now_iso() if resolved else None,
        })
