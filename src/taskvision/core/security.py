"""Bearer token helpers.

Tokens are issued by the identity service; this process only needs to verify
them. ``create_access_token`` mirrors the issuer's claim layout and is used by
operational scripts and the test-suite.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Sequence
from uuid import uuid4

from jose import JWTError, jwt

from .config import Settings


class TokenType(str, Enum):
    """Token kinds understood by the identity service."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(slots=True)
class GeneratedToken:
    token: str
    expires_at: datetime
    jti: str


def create_access_token(
    *,
    subject: str | int,
    roles: Sequence[str] | None,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> GeneratedToken:
    """Create a signed access token for ``subject``."""

    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload: dict[str, Any] = {
        "sub": str(subject),
        "iat": now,
        "exp": expire,
        "roles": list(dict.fromkeys(roles or [])),
        "type": TokenType.ACCESS.value,
        "jti": uuid4().hex,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return GeneratedToken(token=token, expires_at=expire, jti=payload["jti"])


def decode_token(*, token: str, secret: str, algorithm: str) -> dict[str, Any]:
    """Verify the signature and expiry of ``token`` and return its claims."""

    return jwt.decode(token, secret, algorithms=[algorithm])


__all__ = [
    "GeneratedToken",
    "JWTError",
    "TokenType",
    "create_access_token",
    "decode_token",
]
