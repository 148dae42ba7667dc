"""
triage/storage/base.py
Abstract base class for persistent key-value slots.
To add a new backend: subclass KeyValueSlot and implement read() / write().
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueSlot(ABC):
    """
    A small local key → string store, scoped to one client instance.
    Synchronous from the caller's point of view. Implementations may
    raise OSError / sqlite3.Error — callers decide whether to absorb.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key was never written."""
        ...

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Replace the value under key in a single write."""
        ...
