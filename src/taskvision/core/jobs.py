"""Redis/RQ plumbing for the maintenance queue."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import timedelta
from threading import Lock
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue
from rq.job import Job, Retry

from .config import get_settings

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger("taskvision.core.jobs")

T = TypeVar("T")

CARRYOVER_SWEEP_PREFIX = "carryover-sweep"
STALE_TIMER_REAP_PREFIX = "reap-stale-timers"
RECURRING_SUFFIX = "recurring"

_job_connection: Redis | None = None
_job_queue: Queue | None = None
_job_lock = Lock()
_job_session_factory: Callable[[], AbstractAsyncContextManager["AsyncSession"]] | None = None


class JobQueueUnavailableError(RuntimeError):
    """Raised when the Redis-backed job queue cannot be reached."""


def set_job_connection(connection: Redis | None) -> None:
    """Inject a Redis connection, replacing any cached queue."""

    global _job_connection, _job_queue
    with _job_lock:
        _job_connection = connection
        _job_queue = None


def close_job_connection() -> None:
    global _job_connection, _job_queue
    with _job_lock:
        connection = _job_connection
        if connection is not None:
            try:
                connection.close()
            except RedisError:  # pragma: no cover - closing failures are best-effort
                logger.debug("Failed to close Redis connection cleanly.", exc_info=True)
        _job_connection = None
        _job_queue = None


def set_job_session_factory(
    factory: Callable[[], AbstractAsyncContextManager["AsyncSession"]] | None,
) -> None:
    """Override the session factory used when executing jobs."""

    global _job_session_factory
    with _job_lock:
        _job_session_factory = factory


@asynccontextmanager
async def _default_job_session_factory() -> AsyncIterator["AsyncSession"]:
    from ..db.session import async_session_maker

    async with async_session_maker() as session:
        yield session


async def execute_in_job_session(
    callback: Callable[["AsyncSession"], Awaitable[T]],
) -> T:
    """Run ``callback`` with a fresh session owned by the job."""

    factory = _job_session_factory or _default_job_session_factory
    async with factory() as session:
        return await callback(session)


def _resolve_job_connection() -> Redis:
    global _job_connection
    with _job_lock:
        if _job_connection is not None:
            return _job_connection
        settings = get_settings()
        try:
            connection = Redis.from_url(settings.redis_url)
            connection.ping()
        except RedisError as exc:  # pragma: no cover - network failures
            logger.error("Redis job queue unavailable.", exc_info=True)
            raise JobQueueUnavailableError("Job queue is unavailable.") from exc
        _job_connection = connection
        return connection


def get_job_connection() -> Redis:
    return _resolve_job_connection()


def get_job_queue() -> Queue:
    """Return the maintenance queue, creating it on first use."""

    global _job_queue
    connection = _resolve_job_connection()
    with _job_lock:
        if _job_queue is None:
            settings = get_settings()
            _job_queue = Queue(
                settings.job_queue_name,
                connection=connection,
                default_timeout=settings.job_default_timeout or None,
            )
        return _job_queue


def _retry_policy() -> Retry | None:
    settings = get_settings()
    if settings.job_max_retries <= 0:
        return None
    return Retry(max=settings.job_max_retries, interval=settings.job_retry_backoff_seconds or [0])


def _job_id(prefix: str, *, reschedule: bool) -> str:
    # RQ only accepts letters, digits, underscores and dashes in job ids.
    if reschedule:
        return f"{recurring_prefix(prefix)}{uuid4().hex}"
    return f"{prefix}-{uuid4().hex}"


def recurring_prefix(prefix: str) -> str:
    return f"{prefix}-{RECURRING_SUFFIX}-"


def recurring_job_pending(prefix: str, *, include_started: bool = True) -> bool:
    """Return whether a self-rescheduling job with ``prefix`` is already in flight.

    Queued and scheduled jobs always count. Started jobs count unless
    ``include_started`` is false, which lets a running pass schedule its own
    successor.
    """

    queue = get_job_queue()
    marker = recurring_prefix(prefix)
    try:
        job_ids = list(queue.get_job_ids())
        job_ids.extend(queue.scheduled_job_registry.get_job_ids())
        if include_started:
            job_ids.extend(queue.started_job_registry.get_job_ids())
    except RedisError as exc:  # pragma: no cover - network failures
        logger.error("Failed to inspect queue %s", queue.name, exc_info=True)
        raise JobQueueUnavailableError("Unable to inspect job queue; Redis is unavailable.") from exc
    return any(job_id.startswith(marker) for job_id in job_ids)


def _enqueue(
    func: Callable[..., Any],
    *,
    job_id: str,
    description: str,
    delay: timedelta | None = None,
    retry: Retry | None = None,
    **kwargs: Any,
) -> Job:
    queue = get_job_queue()
    settings = get_settings()
    result_ttl = settings.job_result_ttl_seconds or None
    options: dict[str, Any] = {
        "job_id": job_id,
        "retry": retry,
        "result_ttl": result_ttl,
        "failure_ttl": result_ttl,
        "description": description,
        "job_timeout": settings.job_default_timeout or None,
    }
    try:
        if delay is None:
            job = queue.enqueue(func, kwargs=kwargs, **options)
        else:
            job = queue.enqueue_in(delay, func, kwargs=kwargs, **options)
    except RedisError as exc:  # pragma: no cover - network failures
        logger.error("Failed to enqueue job %s", job_id, exc_info=True)
        raise JobQueueUnavailableError("Unable to enqueue job; Redis is unavailable.") from exc
    logger.info("Enqueued job %s", job.id, extra={"job_id": job.id, "queue": queue.name})
    return job


def enqueue_carryover_sweep(
    *,
    request_id: str | None = None,
    reschedule: bool = False,
    delay: timedelta | None = None,
) -> Job:
    """Queue a carryover sweep for all overdue tasks.

    Recurring passes are queued without retries; the next interval picks up
    whatever a failed pass left behind.
    """

    from ..jobs.maintenance import sweep_carryover_job

    return _enqueue(
        sweep_carryover_job,
        job_id=_job_id(CARRYOVER_SWEEP_PREFIX, reschedule=reschedule),
        description="Sweep overdue tasks and record carryovers",
        delay=delay,
        retry=None if reschedule else _retry_policy(),
        request_id=request_id,
        reschedule=reschedule,
    )


def enqueue_stale_timer_reap(
    *,
    request_id: str | None = None,
    reschedule: bool = False,
    delay: timedelta | None = None,
) -> Job:
    """Queue a pass that closes timers left running past the configured timeout."""

    from ..jobs.maintenance import reap_stale_timers_job

    return _enqueue(
        reap_stale_timers_job,
        job_id=_job_id(STALE_TIMER_REAP_PREFIX, reschedule=reschedule),
        description="Close stale active time entries",
        delay=delay,
        retry=None if reschedule else _retry_policy(),
        request_id=request_id,
        reschedule=reschedule,
    )


__all__ = [
    "CARRYOVER_SWEEP_PREFIX",
    "JobQueueUnavailableError",
    "STALE_TIMER_REAP_PREFIX",
    "close_job_connection",
    "enqueue_carryover_sweep",
    "enqueue_stale_timer_reap",
    "execute_in_job_session",
    "get_job_connection",
    "get_job_queue",
    "recurring_job_pending",
    "recurring_prefix",
    "set_job_connection",
    "set_job_session_factory",
]
