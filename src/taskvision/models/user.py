"""Identity records mirrored from the user directory."""

from __future__ import annotations

from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field

from .common import TimestampMixin, enum_type


class UserRole(str, Enum):
    """Roles issued by the identity service."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class User(TimestampMixin, table=True):
    """A person who can act on tasks. Read-only from this service's perspective."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(
        max_length=320,
        sa_column=sa.Column(sa.String(length=320), nullable=False, unique=True),
    )
    full_name: str | None = Field(
        default=None,
        max_length=255,
        sa_column=sa.Column(sa.String(length=255), nullable=True),
    )
    role: UserRole = Field(
        default=UserRole.EMPLOYEE,
        sa_column=sa.Column(
            enum_type(UserRole, "user_role"),
            nullable=False,
            server_default=UserRole.EMPLOYEE.value,
        ),
    )
    is_active: bool = Field(
        default=True,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


__all__ = ["User", "UserRole"]
