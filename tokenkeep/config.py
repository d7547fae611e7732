from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tokenkeep.logging import get_logger

logger = get_logger(__name__)

# Strict generation places one character from each class (upper, lower, digit, symbol)
MIN_TOKEN_LENGTH = 4


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for token issuance and the backing list store."""

    redis_url: str = env_field("redis://localhost:6379/0", "REDIS_URL")
    redis_socket_timeout: float = env_field(
        5.0,
        "REDIS_SOCKET_TIMEOUT",
        description="Seconds before a Redis command or connect attempt fails with StoreError",
    )
    use_memory_store: bool = env_field(False, "USE_MEMORY_STORE")
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Toggle deterministic testing behaviors",
    )
    token_length: int = env_field(
        64, "TOKEN_LENGTH", description="Length of the random part of a bearer token"
    )
    salt_length: int = env_field(
        16, "SALT_LENGTH", description="Length of generated password salts"
    )
    max_tokens_per_user: int = env_field(
        3,
        "MAX_TOKENS_PER_USER",
        description="Live tokens kept per identity; older ones are evicted on login",
    )
    token_days_valid: int = env_field(
        28, "TOKEN_DAYS_VALID", description="Whole days a token stays acceptable"
    )
    token_key_prefix: str = env_field(
        "user_tokens",
        "TOKEN_KEY_PREFIX",
        description="Namespace of the per-identity token lists in the list store",
    )
    credential_key_prefix: str = env_field(
        "user_credentials",
        "CREDENTIAL_KEY_PREFIX",
        description="Namespace of the per-identity credential hashes in Redis",
    )
    bootstrap_user_id: Optional[int] = env_field(
        None,
        "BOOTSTRAP_USER_ID",
        description="Identity whose credentials are seeded at startup when set",
    )
    bootstrap_password: Optional[str] = env_field(
        None, "BOOTSTRAP_PASSWORD", description="Password seeded for BOOTSTRAP_USER_ID"
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("token_length")
    @classmethod
    def _validate_token_length(cls, value: int) -> int:
        if value < MIN_TOKEN_LENGTH:
            raise ValueError(f"token_length must be at least {MIN_TOKEN_LENGTH}")
        return value

    @field_validator("salt_length", "max_tokens_per_user", "token_days_valid")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("redis_socket_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("redis_socket_timeout must be positive")
        return value

    @field_validator("token_key_prefix", "credential_key_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("key prefix must not be empty")
        return value


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
        logger.info(
            "settings_loaded",
            use_memory_store=_settings_cache.use_memory_store,
            max_tokens_per_user=_settings_cache.max_tokens_per_user,
            token_days_valid=_settings_cache.token_days_valid,
        )
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
