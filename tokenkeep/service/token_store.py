from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from tokenkeep.config import Settings
from tokenkeep.logging import get_logger
from tokenkeep.service.credentials import BytesLike, verify_password
from tokenkeep.service.errors import (
    ExpiredToken,
    InvalidCredential,
    MalformedToken,
    UnknownToken,
)
from tokenkeep.service.tokens import (
    TOKEN_LENGTH,
    TOKEN_PREFIX,
    UserToken,
    decode_token,
    encode_token,
    generate_token,
    store_key,
    token_age_days,
    validate_identity,
)
from tokenkeep.storage.common import ListStore

logger = get_logger(__name__)

MAX_TOKENS_PER_USER = 3
DAYS_VALID = 28


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue, validate and revoke bearer tokens kept in per-identity lists.

    Each identity owns one list in the shared store, newest token at the head.
    Only single list commands are atomic; the sequences below run without a
    lock or transaction, so concurrent logins for one identity can leave the
    list above ``max_tokens_per_user`` until the next login trims it, and a
    concurrent validate/revoke pair may both see a token as present.
    """

    def __init__(
        self,
        lists: ListStore,
        *,
        max_tokens_per_user: int = MAX_TOKENS_PER_USER,
        days_valid: int = DAYS_VALID,
        token_length: int = TOKEN_LENGTH,
        key_prefix: str = TOKEN_PREFIX,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_tokens_per_user < 1:
            raise ValueError("max_tokens_per_user must be at least 1")
        self.lists = lists
        self.max_tokens_per_user = max_tokens_per_user
        self.days_valid = days_valid
        self.token_length = token_length
        self.key_prefix = key_prefix
        self._clock = clock
        self.logger = logger

    @classmethod
    def from_settings(cls, lists: ListStore, settings: Settings) -> "TokenService":
        return cls(
            lists,
            max_tokens_per_user=settings.max_tokens_per_user,
            days_valid=settings.token_days_valid,
            token_length=settings.token_length,
            key_prefix=settings.token_key_prefix,
        )

    def key_for(self, identity: int) -> str:
        return store_key(identity, self.key_prefix)

    def _decode(self, wire: str) -> UserToken:
        try:
            return decode_token(wire)
        except MalformedToken as exc:
            self.logger.warning("token_malformed", reason=exc.message)
            raise

    async def issue(
        self,
        identity: int,
        presented_secret: BytesLike,
        salt: BytesLike,
        expected_digest: bytes,
    ) -> UserToken:
        """Create a token for ``identity`` if the password matches.

        Raises InvalidCredential before touching the store when it does not.
        """
        identity = validate_identity(identity)
        if not verify_password(presented_secret, salt, expected_digest):
            self.logger.warning("login_failed", user_id=identity)
            raise InvalidCredential("password hash mismatch")

        key = self.key_for(identity)
        current = await self.lists.length(key)
        if current >= self.max_tokens_per_user:
            # Keep the newest max-1 so the push below lands on exactly max.
            keep = self.max_tokens_per_user - 1
            if keep:
                await self.lists.trim(key, 0, keep - 1)
            else:
                # start > end empties the list
                await self.lists.trim(key, 1, 0)
            self.logger.info(
                "token_list_trimmed", user_id=identity, previous_length=current, kept=keep
            )

        token = generate_token(
            identity, length=self.token_length, now=self._clock()
        )
        await self.lists.push_front(key, encode_token(token))
        self.logger.info("token_issued", user_id=identity)
        return token

    async def validate(self, wire: str) -> int:
        """Return the identity a presented token authenticates.

        An expired token is removed from the list as it is detected.
        """
        token = self._decode(wire)
        key = self.key_for(token.identity)
        if await self.lists.find_position(key, wire) is None:
            self.logger.info("token_unknown", user_id=token.identity, action="validate")
            raise UnknownToken("token not found")

        age = token_age_days(token, self._clock())
        if age >= self.days_valid:
            await self.lists.remove_one(key, wire)
            self.logger.info("token_expired_purged", user_id=token.identity, age_days=age)
            raise ExpiredToken("token expired", detail={"age_days": age})

        self.logger.debug("token_validated", user_id=token.identity)
        return token.identity

    async def revoke(self, wire: str) -> None:
        """Remove a live token. Expired-but-present tokens are removed too."""
        token = self._decode(wire)
        key = self.key_for(token.identity)
        if await self.lists.find_position(key, wire) is None:
            self.logger.info("token_unknown", user_id=token.identity, action="revoke")
            raise UnknownToken("token not found")
        await self.lists.remove_one(key, wire)
        self.logger.info("token_revoked", user_id=token.identity)

    async def live_token_count(self, identity: int) -> int:
        return await self.lists.length(self.key_for(identity))

    async def revoke_all(self, identity: int) -> int:
        """Drop every live token for ``identity``, e.g. after a password change.

        Returns:
            Number of tokens removed
        """
        key = self.key_for(identity)
        removed = await self.lists.length(key)
        await self.lists.delete(key)
        self.logger.info("tokens_revoked_all", user_id=identity, revoked=removed)
        return removed


__all__ = ["DAYS_VALID", "MAX_TOKENS_PER_USER", "TokenService"]
