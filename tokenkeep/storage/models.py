from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class CredentialRecord:
    user_id: int
    salt: bytes
    password_hash: bytes
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
