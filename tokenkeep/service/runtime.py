from __future__ import annotations

import asyncio
import threading
from typing import Optional, Union
from urllib.parse import urlparse, urlunparse

from tokenkeep.config import get_settings, reset_settings_cache
from tokenkeep.logging import get_logger
from tokenkeep.service.credentials import make_credential
from tokenkeep.service.token_store import TokenService
from tokenkeep.service.tokens import validate_identity
from tokenkeep.storage.memory import MemoryCredentialStore, MemoryListStore
from tokenkeep.storage.redis_cache import (
    RedisCredentialStore,
    RedisListStore,
    SyncRedisListStore,
)

logger = get_logger(__name__)


def _mask_url_password(url: Optional[str]) -> Optional[str]:
    """Mask the password component of a URL for logging.

    Example: redis://:mypassword@localhost:6379 -> redis://:***@localhost:6379
    """
    if not url:
        return url
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = parsed.hostname or ""
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            if parsed.username:
                netloc = f"{parsed.username}:***@{netloc}"
            else:
                netloc = f":***@{netloc}"
            return urlunparse((
                parsed.scheme,
                netloc,
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment,
            ))
        return url
    except ValueError:
        return "***url_parse_error***"


ListBackend = Union[MemoryListStore, RedisListStore, SyncRedisListStore]
CredentialBackend = Union[MemoryCredentialStore, RedisCredentialStore]


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self):
        self.settings = get_settings()
        self.lists: ListBackend
        if self.settings.use_memory_store:
            self.lists = MemoryListStore()
        elif self.settings.test_mode:
            # Sync client avoids binding a pool to pytest's event loops
            self.lists = SyncRedisListStore(
                self.settings.redis_url, socket_timeout=self.settings.redis_socket_timeout
            )
        else:
            self.lists = RedisListStore(
                self.settings.redis_url, socket_timeout=self.settings.redis_socket_timeout
            )
        if not self.settings.use_memory_store:
            try:
                self.lists.verify_connection()
            except Exception as exc:
                logger.error(
                    "runtime_list_store_unreachable",
                    redis_url=_mask_url_password(self.settings.redis_url),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise RuntimeError(
                    "Redis is required for token storage; start Redis or set USE_MEMORY_STORE=true"
                ) from exc
        logger.info(
            "runtime_list_store_initialized",
            store_type=type(self.lists).__name__,
            redis_url=None if self.settings.use_memory_store else _mask_url_password(self.settings.redis_url),
        )
        self.credentials: CredentialBackend
        if self.settings.use_memory_store:
            self.credentials = MemoryCredentialStore()
        else:
            self.credentials = RedisCredentialStore(
                self.settings.redis_url,
                key_prefix=self.settings.credential_key_prefix,
                socket_timeout=self.settings.redis_socket_timeout,
            )
        self.tokens = TokenService.from_settings(self.lists, self.settings)
        self._seed_bootstrap_user()

    def _seed_bootstrap_user(self) -> None:
        user_id = self.settings.bootstrap_user_id
        password = self.settings.bootstrap_password
        if user_id is None and not password:
            return
        if user_id is None or not password:
            logger.warning(
                "bootstrap_user_incomplete",
                has_user_id=user_id is not None,
                has_password=bool(password),
            )
            return
        self.register_user(user_id, password)
        logger.info("bootstrap_user_seeded", user_id=user_id)

    def register_user(self, user_id: int, password: str) -> None:
        """Store a salted hash for ``user_id`` in the credential store."""
        user_id = validate_identity(user_id)
        salt, digest = make_credential(password, self.settings.salt_length)
        self.credentials.save_credentials(user_id, salt, digest)
        logger.info("credentials_saved", user_id=user_id)

    async def close(self) -> None:
        await self.lists.close()
        if isinstance(self.credentials, RedisCredentialStore):
            self.credentials.close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner."""
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""

    global runtime

    with _runtime_lock:
        if runtime is not None and isinstance(runtime.lists, RedisListStore):
            try:
                loop = asyncio.get_running_loop()
                loop.create_task(runtime.close())
            except RuntimeError:
                asyncio.run(runtime.close())
        elif runtime is not None and isinstance(runtime.lists, SyncRedisListStore):
            runtime.lists.client.close()
            if isinstance(runtime.credentials, RedisCredentialStore):
                runtime.credentials.close()

        reset_settings_cache()
        settings = get_settings()
        if not settings.test_mode:
            raise RuntimeError("runtime reset is only allowed in TEST_MODE")
        runtime = Runtime()
        return runtime
