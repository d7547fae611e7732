from __future__ import annotations

import contextlib
from datetime import datetime
from typing import Iterator, Optional

import redis.asyncio as aioredis
from redis import Redis
from redis.exceptions import RedisError

from tokenkeep.logging import get_logger
from tokenkeep.service.errors import StoreError
from tokenkeep.storage.models import CredentialRecord

logger = get_logger(__name__)


@contextlib.contextmanager
def _store_errors(operation: str, key: str) -> Iterator[None]:
    """Surface Redis failures (including timeouts) as StoreError."""
    try:
        yield
    except (RedisError, OSError) as exc:
        logger.error(
            "list_store_command_failed",
            operation=operation,
            key=key,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise StoreError(
            f"list store {operation} failed",
            detail={"operation": operation, "error_type": type(exc).__name__},
        ) from exc


class RedisListStore:
    """Redis list commands behind the ListStore contract.

    The client owns a connection pool; each command borrows a connection for
    its own round trip only.
    """

    DEFAULT_OPERATION_TIMEOUT = 5.0

    def __init__(self, redis_url: str, *, socket_timeout: float = DEFAULT_OPERATION_TIMEOUT):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    def verify_connection(self) -> None:
        """Assert Redis connectivity before enabling dependent features."""
        # Short-lived sync client so the async pool is not bound to a temporary loop.
        sync_client = Redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )
        try:
            sync_client.ping()
        finally:
            sync_client.close()

    async def push_front(self, key: str, value: str) -> int:
        with _store_errors("push_front", key):
            return int(await self.client.lpush(key, value))

    async def trim(self, key: str, start: int, end: int) -> None:
        with _store_errors("trim", key):
            await self.client.ltrim(key, start, end)

    async def length(self, key: str) -> int:
        with _store_errors("length", key):
            return int(await self.client.llen(key))

    async def find_position(self, key: str, value: str) -> Optional[int]:
        with _store_errors("find_position", key):
            position = await self.client.lpos(key, value)
        return None if position is None else int(position)

    async def remove_one(self, key: str, value: str) -> int:
        with _store_errors("remove_one", key):
            return int(await self.client.lrem(key, 1, value))

    async def delete(self, key: str) -> int:
        with _store_errors("delete", key):
            return int(await self.client.delete(key))

    async def close(self) -> None:
        """Close the connection pool. Call when shutting down or resetting runtime."""
        await self.client.aclose()
        await self.client.connection_pool.disconnect()


class SyncRedisListStore:
    """Synchronous Redis client exposing the same awaitable methods.

    Used in test mode to avoid binding an async pool to pytest's short-lived
    event loops.
    """

    def __init__(
        self, redis_url: str, *, socket_timeout: float = RedisListStore.DEFAULT_OPERATION_TIMEOUT
    ):
        self.redis_url = redis_url
        self.client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    def verify_connection(self) -> None:
        self.client.ping()

    async def push_front(self, key: str, value: str) -> int:
        with _store_errors("push_front", key):
            return int(self.client.lpush(key, value))

    async def trim(self, key: str, start: int, end: int) -> None:
        with _store_errors("trim", key):
            self.client.ltrim(key, start, end)

    async def length(self, key: str) -> int:
        with _store_errors("length", key):
            return int(self.client.llen(key))

    async def find_position(self, key: str, value: str) -> Optional[int]:
        with _store_errors("find_position", key):
            position = self.client.lpos(key, value)
        return None if position is None else int(position)

    async def remove_one(self, key: str, value: str) -> int:
        with _store_errors("remove_one", key):
            return int(self.client.lrem(key, 1, value))

    async def delete(self, key: str) -> int:
        with _store_errors("delete", key):
            return int(self.client.delete(key))

    async def close(self) -> None:
        self.client.close()


class RedisCredentialStore:
    """Salt and password hash per identity, kept in a Redis hash.

    Lets a seeding process and the API processes share user records. Values
    are hex so the client can keep ``decode_responses=True``.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        key_prefix: str = "user_credentials",
        socket_timeout: float = RedisListStore.DEFAULT_OPERATION_TIMEOUT,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    def _key(self, user_id: int) -> str:
        return f"{self.key_prefix}:id{user_id}"

    def get_credentials(self, user_id: int) -> Optional[CredentialRecord]:
        key = self._key(user_id)
        with _store_errors("get_credentials", key):
            fields = self.client.hgetall(key)
        if not fields:
            return None
        try:
            return CredentialRecord(
                user_id=user_id,
                salt=bytes.fromhex(fields["salt"]),
                password_hash=bytes.fromhex(fields["password_hash"]),
                created_at=datetime.fromisoformat(fields["created_at"]),
            )
        except (KeyError, ValueError) as exc:
            logger.error("credential_record_corrupt", user_id=user_id, error_type=type(exc).__name__)
            raise StoreError(
                "credential record unreadable",
                detail={"operation": "get_credentials", "error_type": type(exc).__name__},
            ) from exc

    def save_credentials(
        self, user_id: int, salt: bytes | str, password_hash: bytes
    ) -> CredentialRecord:
        if isinstance(salt, str):
            salt = salt.encode("utf-8")
        record = CredentialRecord(user_id=user_id, salt=salt, password_hash=password_hash)
        key = self._key(user_id)
        with _store_errors("save_credentials", key):
            self.client.hset(
                key,
                mapping={
                    "salt": record.salt.hex(),
                    "password_hash": record.password_hash.hex(),
                    "created_at": record.created_at.isoformat(),
                },
            )
        return record

    def close(self) -> None:
        self.client.close()


__all__ = ["RedisCredentialStore", "RedisListStore", "SyncRedisListStore"]
