"""Claims carried by bearer tokens from the identity service."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.security import TokenType


class TokenPayload(BaseModel):
    sub: str
    exp: datetime
    iat: datetime | None = None
    jti: str | None = None
    roles: list[str] = Field(default_factory=list)
    type: TokenType = TokenType.ACCESS


__all__ = ["TokenPayload"]
