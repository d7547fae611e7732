from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from tokenkeep.service.tokens import MAX_IDENTITY

_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "validation_error",
    "not_found",
    "server_error",
    "service_unavailable",
})


class ErrorBody(BaseModel):
    """Error envelope body with stable code values."""

    code: str = Field(..., description="Stable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: str(uuid4()))


class LoginRequest(BaseModel):
    user_id: int = Field(..., ge=0, le=MAX_IDENTITY)
    password: str = Field(..., min_length=1, max_length=1024)


class TokenResponse(BaseModel):
    token: str
    user_id: int
    issued_at: datetime
    token_type: str = "bearer"


class WhoAmIResponse(BaseModel):
    user_id: int
