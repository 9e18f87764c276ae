"""Database helpers."""

from __future__ import annotations

from .base import SQLModel, UTCDateTime

__all__ = ["SQLModel", "UTCDateTime"]
