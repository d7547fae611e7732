from __future__ import annotations

import threading
from typing import Dict, List, Optional

from tokenkeep.logging import get_logger
from tokenkeep.storage.common import resolve_range
from tokenkeep.storage.models import CredentialRecord


class MemoryListStore:
    """In-process list store with the same semantics as the Redis backend.

    Used in tests and with ``USE_MEMORY_STORE=true``. State is per process, so
    it does not bound tokens across replicas.
    """

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.lists: Dict[str, List[str]] = {}
        self._data_lock = threading.Lock()

    def verify_connection(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def push_front(self, key: str, value: str) -> int:
        with self._data_lock:
            items = self.lists.setdefault(key, [])
            items.insert(0, value)
            return len(items)

    async def trim(self, key: str, start: int, end: int) -> None:
        with self._data_lock:
            items = self.lists.get(key)
            if items is None:
                return
            lo, hi = resolve_range(len(items), start, end)
            kept = items[lo:hi]
            if kept:
                self.lists[key] = kept
            else:
                # Redis drops empty lists
                self.lists.pop(key, None)

    async def length(self, key: str) -> int:
        with self._data_lock:
            return len(self.lists.get(key, ()))

    async def find_position(self, key: str, value: str) -> Optional[int]:
        with self._data_lock:
            items = self.lists.get(key, [])
            try:
                return items.index(value)
            except ValueError:
                return None

    async def remove_one(self, key: str, value: str) -> int:
        with self._data_lock:
            items = self.lists.get(key)
            if not items or value not in items:
                return 0
            items.remove(value)
            if not items:
                self.lists.pop(key, None)
            return 1

    async def delete(self, key: str) -> int:
        with self._data_lock:
            return 1 if self.lists.pop(key, None) is not None else 0

    def snapshot(self, key: str) -> List[str]:
        """Copy of a list, head first."""
        with self._data_lock:
            return list(self.lists.get(key, ()))


class MemoryCredentialStore:
    """Stand-in for the external user-record store."""

    def __init__(self) -> None:
        self.credentials: Dict[int, CredentialRecord] = {}
        self._data_lock = threading.Lock()

    def get_credentials(self, user_id: int) -> Optional[CredentialRecord]:
        with self._data_lock:
            return self.credentials.get(user_id)

    def save_credentials(
        self, user_id: int, salt: bytes | str, password_hash: bytes
    ) -> CredentialRecord:
        if isinstance(salt, str):
            salt = salt.encode("utf-8")
        record = CredentialRecord(user_id=user_id, salt=salt, password_hash=password_hash)
        with self._data_lock:
            self.credentials[user_id] = record
        return record


__all__ = ["MemoryCredentialStore", "MemoryListStore"]
