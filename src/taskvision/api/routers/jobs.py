"""Routes exposing maintenance job orchestration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from rq.job import Job

from ...core.context import get_request_id
from ...core.jobs import JobQueueUnavailableError, enqueue_carryover_sweep, enqueue_stale_timer_reap
from ...deps import AdminUserDependency
from ...schemas import JobEnqueueResponse

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _as_timezone_aware(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _enqueue_or_503(enqueue: Callable[..., Job]) -> JobEnqueueResponse:
    try:
        job = enqueue(request_id=get_request_id())
    except JobQueueUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background job queue is unavailable.",
        ) from exc
    return JobEnqueueResponse(
        job_id=job.id,
        queue=job.origin or "default",
        enqueued_at=_as_timezone_aware(job.enqueued_at),
    )


@router.post(
    "/carryover-sweep",
    response_model=JobEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a carryover sweep",
)
async def enqueue_carryover_sweep_job(current_user: AdminUserDependency) -> JobEnqueueResponse:
    return _enqueue_or_503(enqueue_carryover_sweep)


@router.post(
    "/reap-stale-timers",
    response_model=JobEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a stale timer reaper pass",
)
async def enqueue_stale_timer_reap_job(current_user: AdminUserDependency) -> JobEnqueueResponse:
    return _enqueue_or_503(enqueue_stale_timer_reap)


__all__ = ["router"]
