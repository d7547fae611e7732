from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each exception class defines both an HTTP status_code and a stable
    error_code:
    - validation_error (400)
    - unauthorized (401)
    - server_error (500)
    - service_unavailable (503)

    ``public_message`` when set replaces ``message`` in responses so that
    internally distinct failures look the same to the client.
    """

    status_code: int = 400
    error_code: str = "validation_error"
    public_message: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}

    @property
    def client_message(self) -> str:
        return self.public_message or self.message


class ValidationError(ServiceError):
    """Request validation failed (400)."""
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(ServiceError):
    """Authentication failed or missing (401)."""
    status_code = 401
    error_code = "unauthorized"


class InvalidCredential(AuthenticationError):
    """Password does not match the stored salted hash. No token was created."""
    public_message = "invalid credentials"


class MalformedToken(AuthenticationError):
    """Presented token could not be decoded."""
    public_message = "please log in again"


class UnknownToken(AuthenticationError):
    """Token decodes but is not in the identity's live list."""
    public_message = "please log in again"


class ExpiredToken(AuthenticationError):
    """Token is past its validity window and has been purged."""
    public_message = "please log in again"


class ServerError(ServiceError):
    """Internal server error (500)."""
    status_code = 500
    error_code = "server_error"


class TokenGenerationError(ServerError):
    """The entropy source failed while generating a token or salt."""


class StoreError(ServiceError):
    """Backing list store is unreachable or returned a protocol error (503).

    Transient; callers may retry with backoff. Never means "not authenticated".
    """
    status_code = 503
    error_code = "service_unavailable"
    public_message = "token store unavailable"


__all__ = [
    "ServiceError",
    "ValidationError",
    "AuthenticationError",
    "InvalidCredential",
    "MalformedToken",
    "UnknownToken",
    "ExpiredToken",
    "ServerError",
    "TokenGenerationError",
    "StoreError",
]
