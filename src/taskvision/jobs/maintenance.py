"""Recurring maintenance jobs: carryover sweep and stale timer reaper.

Each job runs one pass in its own session. When enqueued with
``reschedule=True`` the pass queues the next one after the configured
interval, whether or not it succeeded, so a single seeded job keeps the cycle
going. A successor is only queued when none is already waiting.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from rq.job import Job
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import get_settings
from ..core.context import bind_request_id, clear_request_id, reset_request_id
from ..core.jobs import (
    CARRYOVER_SWEEP_PREFIX,
    STALE_TIMER_REAP_PREFIX,
    JobQueueUnavailableError,
    enqueue_carryover_sweep,
    enqueue_stale_timer_reap,
    execute_in_job_session,
    recurring_job_pending,
)
from ..models import TimeLogEntry
from ..services.carryover import CarryoverTracker, CarryoverUpdate
from ..services.time_tracking import TimeTrackingLedger

logger = logging.getLogger(__name__)


async def _sweep_carryover() -> list[CarryoverUpdate]:
    async def _invoke(session: AsyncSession) -> list[CarryoverUpdate]:
        return await CarryoverTracker(session).sweep()

    return await execute_in_job_session(_invoke)


async def _reap_stale_timers() -> list[TimeLogEntry]:
    async def _invoke(session: AsyncSession) -> list[TimeLogEntry]:
        return await TimeTrackingLedger(session).reap_stale()

    return await execute_in_job_session(_invoke)


def _schedule_next(
    enqueue: Callable[..., Job],
    prefix: str,
    interval_seconds: int,
    request_id: str | None,
) -> None:
    try:
        if recurring_job_pending(prefix, include_started=False):
            logger.info("Next %s run already queued; not rescheduling.", prefix)
            return
        enqueue(request_id=request_id, reschedule=True, delay=timedelta(seconds=interval_seconds))
    except JobQueueUnavailableError:
        logger.error("Could not schedule the next maintenance run.", exc_info=True)


def sweep_carryover_job(request_id: str | None = None, reschedule: bool = False) -> dict[str, Any]:
    """Carry over every incomplete task whose due date has passed."""

    token = bind_request_id(request_id) if request_id else None
    if token is None:
        clear_request_id()
    try:
        updates = asyncio.run(_sweep_carryover())
        logger.info(
            "Carryover sweep job carried over %d tasks",
            len(updates),
            extra={"task_ids": [update.task_id for update in updates]},
        )
        return {
            "carried_over": [
                {
                    "task_id": update.task_id,
                    "swept_on": update.swept_on.isoformat(),
                    "carryover_count": update.carryover_count,
                }
                for update in updates
            ],
        }
    finally:
        if reschedule:
            _schedule_next(
                enqueue_carryover_sweep,
                CARRYOVER_SWEEP_PREFIX,
                get_settings().carryover_sweep_interval_seconds,
                request_id,
            )
        if token is not None:
            reset_request_id(token)
        else:
            clear_request_id()


def reap_stale_timers_job(request_id: str | None = None, reschedule: bool = False) -> dict[str, Any]:
    """Close active time entries that have run past the stale timeout."""

    token = bind_request_id(request_id) if request_id else None
    if token is None:
        clear_request_id()
    try:
        reaped = asyncio.run(_reap_stale_timers())
        return {"reaped_entry_ids": [entry.id for entry in reaped]}
    finally:
        if reschedule:
            _schedule_next(
                enqueue_stale_timer_reap,
                STALE_TIMER_REAP_PREFIX,
                get_settings().stale_timer_reap_interval_seconds,
                request_id,
            )
        if token is not None:
            reset_request_id(token)
        else:
            clear_request_id()


__all__ = ["reap_stale_timers_job", "sweep_carryover_job"]
