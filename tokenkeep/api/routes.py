from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header

from tokenkeep.api.schemas import Envelope, LoginRequest, TokenResponse, WhoAmIResponse
from tokenkeep.logging import get_logger
from tokenkeep.service.errors import InvalidCredential, MalformedToken
from tokenkeep.service.runtime import get_runtime
from tokenkeep.service.tokens import encode_token

logger = get_logger(__name__)

router = APIRouter(prefix="/v1")


def _extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    if not header.lower().startswith("bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    token = _extract_bearer(authorization)
    if token is None:
        raise MalformedToken("missing bearer token")
    return token


async def get_user_id(token: str = Depends(bearer_token)) -> int:
    return await get_runtime().tokens.validate(token)


@router.post("/auth/login", response_model=Envelope, tags=["auth"])
async def login(body: LoginRequest):
    """Exchange a user id and password for a bearer token.

    Raises:
        401: unknown user or wrong password (indistinguishable)
        503: token store unavailable
    """
    runtime = get_runtime()
    record = runtime.credentials.get_credentials(body.user_id)
    if record is None:
        logger.warning("login_unknown_user", user_id=body.user_id)
        raise InvalidCredential("no credential record")
    token = await runtime.tokens.issue(
        body.user_id, body.password, record.salt, record.password_hash
    )
    return Envelope(
        status="ok",
        data=TokenResponse(
            token=encode_token(token),
            user_id=token.identity,
            issued_at=token.issued_at,
        ),
    )


@router.get("/auth/me", response_model=Envelope, tags=["auth"])
async def whoami(user_id: int = Depends(get_user_id)):
    return Envelope(status="ok", data=WhoAmIResponse(user_id=user_id))


@router.post("/auth/logout", response_model=Envelope, tags=["auth"])
async def logout(token: str = Depends(bearer_token)):
    await get_runtime().tokens.revoke(token)
    return Envelope(status="ok", data={"message": "token revoked"})
