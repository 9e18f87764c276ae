"""Schemas for the maintenance job API."""

from __future__ import annotations

from datetime import datetime

from .base import APIModel


class JobEnqueueResponse(APIModel):
    """Metadata about an enqueued background job."""

    job_id: str
    queue: str
    enqueued_at: datetime
    status: str = "queued"


__all__ = ["JobEnqueueResponse"]
