"""Background job implementations executed by the RQ worker."""

from __future__ import annotations

from .maintenance import reap_stale_timers_job, sweep_carryover_job

__all__ = ["reap_stale_timers_job", "sweep_carryover_job"]
