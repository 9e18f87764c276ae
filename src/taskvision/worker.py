"""Entry point for running the maintenance worker."""

from __future__ import annotations

import logging

from rq import Worker

from .core.config import get_settings
from .core.jobs import (
    CARRYOVER_SWEEP_PREFIX,
    STALE_TIMER_REAP_PREFIX,
    enqueue_carryover_sweep,
    enqueue_stale_timer_reap,
    get_job_connection,
    get_job_queue,
    recurring_job_pending,
)
from .core.logging import configure_logging

logger = logging.getLogger(__name__)


def seed_recurring_jobs() -> None:
    """Queue the first carryover sweep and reaper pass; each reschedules itself.

    A chain that is already queued, scheduled or running is left alone, so
    restarting or adding workers never multiplies the recurring passes.
    """

    for prefix, enqueue in (
        (CARRYOVER_SWEEP_PREFIX, enqueue_carryover_sweep),
        (STALE_TIMER_REAP_PREFIX, enqueue_stale_timer_reap),
    ):
        if recurring_job_pending(prefix):
            logger.info("Recurring %s job already pending; not seeding.", prefix)
            continue
        enqueue(reschedule=True)


def run() -> None:
    """Start an RQ worker bound to the configured queue."""

    settings = get_settings()
    configure_logging(settings)

    connection = get_job_connection()
    queue = get_job_queue()
    worker_name = settings.job_worker_name or None

    seed_recurring_jobs()
    logger.info(
        "Starting RQ worker '%s' listening on queue '%s'",
        worker_name or "anonymous",
        queue.name,
        extra={"queue": queue.name, "worker_name": worker_name or "anonymous"},
    )
    worker = Worker([queue], connection=connection, name=worker_name)
    worker.work(with_scheduler=True)


if __name__ == "__main__":  # pragma: no cover - script entry point
    run()
