"""Password hashing and random secret generation.

Passwords are stored by the caller as ``sha3_256(password || salt)`` alongside
the salt. This module never persists anything.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from typing import Tuple, Union

from tokenkeep.logging import get_logger
from tokenkeep.service.errors import TokenGenerationError

logger = get_logger(__name__)

SALT_LENGTH = 16

# Characters that are easy to misread or that need quoting in headers
SIMILAR_CHARACTERS = frozenset("iI1loO0\"'`|")

CHARACTER_CLASSES: Tuple[str, ...] = tuple(
    "".join(ch for ch in chars if ch not in SIMILAR_CHARACTERS)
    for chars in (
        string.ascii_lowercase,
        string.ascii_uppercase,
        string.digits,
        string.punctuation,
    )
)
ALPHABET = "".join(CHARACTER_CLASSES)

BytesLike = Union[bytes, str]

_sysrand = secrets.SystemRandom()


def _as_bytes(value: BytesLike) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def hash_password(secret: BytesLike, salt: BytesLike) -> bytes:
    """Return the SHA3-256 digest of the secret followed by the salt."""
    hasher = hashlib.sha3_256()
    hasher.update(_as_bytes(secret) + _as_bytes(salt))
    return hasher.digest()


def verify_password(secret: BytesLike, salt: BytesLike, expected_digest: bytes) -> bool:
    """Check a presented secret against the stored digest.

    Same result as byte equality, but the comparison time does not depend on
    where the digests differ.
    """
    return hmac.compare_digest(hash_password(secret, salt), _as_bytes(expected_digest))


def generate_random_string(length: int) -> str:
    """Random printable string with at least one char from every class."""
    if length < len(CHARACTER_CLASSES):
        raise ValueError(
            f"length must be at least {len(CHARACTER_CLASSES)} to include every character class"
        )
    try:
        chars = [secrets.choice(cls) for cls in CHARACTER_CLASSES]
        chars.extend(secrets.choice(ALPHABET) for _ in range(length - len(chars)))
        _sysrand.shuffle(chars)
    except (OSError, NotImplementedError) as exc:
        logger.error("entropy_source_failed", error=str(exc))
        raise TokenGenerationError("random generator unavailable") from exc
    return "".join(chars)


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Generate a salt for a new password."""
    return generate_random_string(length)


def make_credential(password: BytesLike, salt_length: int = SALT_LENGTH) -> Tuple[str, bytes]:
    """Produce the ``(salt, digest)`` pair a user store should persist."""
    salt = generate_salt(salt_length)
    return salt, hash_password(password, salt)


__all__ = [
    "ALPHABET",
    "CHARACTER_CLASSES",
    "SALT_LENGTH",
    "generate_random_string",
    "generate_salt",
    "hash_password",
    "make_credential",
    "verify_password",
]
