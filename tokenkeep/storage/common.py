"""Storage contracts shared between the memory and Redis backends."""

from __future__ import annotations

from typing import Optional, Protocol, Tuple

from tokenkeep.storage.models import CredentialRecord


class ListStore(Protocol):
    """Keyed lists of strings, Redis list semantics.

    Each call is atomic on its own. Nothing here groups calls into a
    transaction.
    """

    async def push_front(self, key: str, value: str) -> int: ...

    async def trim(self, key: str, start: int, end: int) -> None: ...

    async def length(self, key: str) -> int: ...

    async def find_position(self, key: str, value: str) -> Optional[int]: ...

    async def remove_one(self, key: str, value: str) -> int: ...

    async def delete(self, key: str) -> int: ...

    def verify_connection(self) -> None: ...

    async def close(self) -> None: ...


class CredentialStore(Protocol):
    """Caller-owned user records; this package only reads salt and hash."""

    def get_credentials(self, user_id: int) -> Optional[CredentialRecord]: ...

    def save_credentials(
        self, user_id: int, salt: bytes | str, password_hash: bytes
    ) -> CredentialRecord: ...


def resolve_range(size: int, start: int, end: int) -> Tuple[int, int]:
    """Translate inclusive LTRIM-style indexes into a Python slice ``[lo, hi)``.

    Negative indexes count from the tail. ``start > end`` or a start past the
    tail yields an empty range.
    """
    if start < 0:
        start = max(0, size + start)
    if end < 0:
        end = size + end
    end = min(end, size - 1)
    if start > end or start >= size:
        return 0, 0
    return start, end + 1


__all__ = ["CredentialStore", "ListStore", "resolve_range"]
