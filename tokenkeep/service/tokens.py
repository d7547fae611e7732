from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from tokenkeep.service.credentials import generate_random_string
from tokenkeep.service.errors import MalformedToken, ValidationError

TOKEN_LENGTH = 64
TOKEN_PREFIX = "user_tokens"
MAX_IDENTITY = 2**64 - 1


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def validate_identity(value: Any) -> int:
    """Coerce a caller-supplied identity to the unsigned 64-bit integer we key on."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("identity must be an integer", detail={"identity": repr(value)})
    if value < 0 or value > MAX_IDENTITY:
        raise ValidationError("identity out of range", detail={"identity": value})
    return value


@dataclass(frozen=True)
class UserToken:
    """An issued bearer token.

    Wire form (compact JSON, fixed key order)::

        {"user_id":42,"token_str":"<64 chars>","birth":1700000000}

    ``birth`` is the issuance time in whole UNIX seconds (UTC). Issuer and
    validator compare the exact wire string, so the encoding must not change.
    """

    identity: int
    value: str
    issued_at: datetime

    @classmethod
    def new(
        cls, identity: int, *, length: int = TOKEN_LENGTH, now: Optional[datetime] = None
    ) -> "UserToken":
        return generate_token(identity, length=length, now=now)

    def encode(self) -> str:
        return encode_token(self)

    @classmethod
    def decode(cls, wire: str) -> "UserToken":
        return decode_token(wire)

    def age_days(self, now: Optional[datetime] = None) -> int:
        return token_age_days(self, now)


def generate_token(
    identity: int, *, length: int = TOKEN_LENGTH, now: Optional[datetime] = None
) -> UserToken:
    identity = validate_identity(identity)
    issued_at = (now or _now()).astimezone(timezone.utc).replace(microsecond=0)
    return UserToken(
        identity=identity,
        value=generate_random_string(length),
        issued_at=issued_at,
    )


def encode_token(token: UserToken) -> str:
    payload = {
        "user_id": token.identity,
        "token_str": token.value,
        "birth": int(token.issued_at.timestamp()),
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)


def decode_token(wire: Any) -> UserToken:
    """Parse an untrusted wire token. Any structural problem raises MalformedToken."""
    if not isinstance(wire, str) or not wire:
        raise MalformedToken("token is not a string")
    try:
        payload = json.loads(wire)
    except (ValueError, RecursionError) as exc:
        raise MalformedToken("token is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedToken("token is not an object")

    missing = [name for name in ("user_id", "token_str", "birth") if name not in payload]
    if missing:
        raise MalformedToken("token is missing fields", detail={"missing": missing})

    user_id = payload["user_id"]
    token_str = payload["token_str"]
    birth = payload["birth"]
    try:
        identity = validate_identity(user_id)
    except ValidationError as exc:
        raise MalformedToken("token user_id is invalid") from exc
    if not isinstance(token_str, str) or not token_str:
        raise MalformedToken("token_str must be a non-empty string")
    if isinstance(birth, bool) or not isinstance(birth, int):
        raise MalformedToken("birth must be an integer timestamp")
    try:
        issued_at = datetime.fromtimestamp(birth, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedToken("birth timestamp out of range") from exc
    return UserToken(identity=identity, value=token_str, issued_at=issued_at)


def store_key(identity: int, prefix: str = TOKEN_PREFIX) -> str:
    """Name of the identity's live-token list in the list store."""
    return f"{prefix}:id{validate_identity(identity)}"


def token_age_days(token: UserToken, now: Optional[datetime] = None) -> int:
    """Whole days since issuance. Future-dated tokens report 0."""
    elapsed = (now or _now()) - token.issued_at
    return max(0, elapsed.days)


__all__ = [
    "MAX_IDENTITY",
    "TOKEN_LENGTH",
    "TOKEN_PREFIX",
    "UserToken",
    "decode_token",
    "encode_token",
    "generate_token",
    "store_key",
    "token_age_days",
    "validate_identity",
]
