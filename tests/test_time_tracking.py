from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from taskvision.errors import (
    AlreadyTrackingError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from taskvision.models import BreakType, TaskStatus, TimeEntrySource, UserRole
from taskvision.services import TimeTrackingLedger

NOW = datetime(2026, 3, 2, 17, 0, tzinfo=timezone.utc)
MORNING = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
async def people(seed):
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    worker = await seed.user("worker@example.com")
    outsider = await seed.user("outsider@example.com")
    task = await seed.task(admin, assignees=[worker], estimate_minutes=60)
    return admin, worker, outsider, task


async def test_start_and_stop_a_timer(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)

    entry = await ledger.start(worker, task.id, "Survey", tags=["site"], now=MORNING)
    assert entry.is_active
    assert entry.source is TimeEntrySource.TIMER
    assert (await ledger.active_entry_for(worker.id)).id == entry.id

    stopped = await ledger.stop(worker, entry.id, "Survey done", now=MORNING + timedelta(minutes=90))
    assert stopped.end_time == MORNING + timedelta(minutes=90)
    assert stopped.duration_seconds == 90 * 60
    assert stopped.description == "Survey done"
    assert stopped.tags == ["site"]
    assert await ledger.active_entry_for(worker.id) is None


async def test_one_active_entry_per_user(session, people) -> None:
    admin, worker, _, task = people
    other = await TimeTrackingLedger(session).start(admin, task.id, now=MORNING)
    ledger = TimeTrackingLedger(session)
    first = await ledger.start(worker, task.id, now=MORNING)

    with pytest.raises(AlreadyTrackingError) as excinfo:
        await ledger.start(worker, task.id, now=MORNING + timedelta(minutes=1))
    assert excinfo.value.code == "already_tracking"
    assert excinfo.value.details["activeEntry"]["id"] == first.id

    with pytest.raises(AlreadyTrackingError):
        await ledger.start_break(worker, BreakType.COFFEE, now=MORNING + timedelta(minutes=2))

    # A different user on the same task is unaffected.
    assert other.user_id == admin.id
    assert other.is_active


async def test_stop_only_closes_the_callers_active_entry(session, people) -> None:
    admin, worker, _, task = people
    ledger = TimeTrackingLedger(session)
    entry = await ledger.start(worker, task.id, now=MORNING)

    with pytest.raises(NotFoundError):
        await ledger.stop(admin, entry.id, now=NOW)

    await ledger.stop(worker, entry.id, now=NOW)
    with pytest.raises(NotFoundError):
        await ledger.stop(worker, entry.id, now=NOW)


async def test_stop_all_and_pause(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)

    assert await ledger.stop_all(worker, now=NOW) == []

    await ledger.start(worker, task.id, now=MORNING)
    assert await ledger.pause(task.id + 1, worker.id, now=NOW) is None
    paused = await ledger.pause(task.id, worker.id, now=MORNING + timedelta(minutes=10))
    assert paused is not None
    assert paused.duration_seconds == 600

    await ledger.start(worker, task.id, now=MORNING + timedelta(minutes=20))
    stopped = await ledger.stop_all(worker, now=MORNING + timedelta(minutes=50))
    assert [entry.duration_seconds for entry in stopped] == [1800]


async def test_timer_requires_visibility_and_an_open_task(session, seed, people) -> None:
    admin, _, outsider, task = people
    ledger = TimeTrackingLedger(session)

    with pytest.raises(PermissionDeniedError):
        await ledger.start(outsider, task.id, now=MORNING)
    with pytest.raises(NotFoundError):
        await ledger.start(outsider, 9999, now=MORNING)

    finished = await seed.task(admin, status=TaskStatus.COMPLETED)
    with pytest.raises(ValidationError):
        await ledger.start(admin, finished.id, now=MORNING)


async def test_manual_entries_validate_their_range(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)

    with pytest.raises(ValidationError):
        await ledger.log_manual(worker, task.id, MORNING, MORNING, now=NOW)
    with pytest.raises(ValidationError):
        await ledger.log_manual(worker, task.id, MORNING, NOW + timedelta(minutes=1), now=NOW)
    with pytest.raises(ValidationError):
        await ledger.log_manual(worker, None, MORNING, MORNING + timedelta(hours=1), now=NOW)

    entry = await ledger.log_manual(
        worker,
        task.id,
        MORNING,
        MORNING + timedelta(hours=1),
        description="Paperwork",
        now=NOW,
    )
    assert entry.source is TimeEntrySource.MANUAL
    assert entry.duration_seconds == 3600
    assert not entry.is_active


async def test_manual_entries_cannot_overlap(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)
    first = await ledger.log_manual(worker, task.id, MORNING, MORNING + timedelta(hours=1), now=NOW)

    with pytest.raises(ConflictError) as excinfo:
        await ledger.log_manual(
            worker,
            task.id,
            MORNING + timedelta(minutes=30),
            MORNING + timedelta(hours=2),
            now=NOW,
        )
    assert excinfo.value.code == "overlapping_entry"
    assert excinfo.value.details == {"overlappingEntryIds": [first.id]}

    # Touching intervals do not overlap.
    adjacent = await ledger.log_manual(
        worker,
        task.id,
        MORNING + timedelta(hours=1),
        MORNING + timedelta(hours=2),
        now=NOW,
    )
    assert adjacent.id != first.id


async def test_breaks_are_never_billable(session, people) -> None:
    _, worker, _, _ = people
    ledger = TimeTrackingLedger(session)

    entry = await ledger.log_break(
        worker,
        MORNING,
        MORNING + timedelta(minutes=15),
        BreakType.COFFEE,
        now=NOW,
    )
    assert entry.is_break
    assert entry.task_id is None
    assert entry.billable is False
    assert entry.break_type is BreakType.COFFEE

    with pytest.raises(ValidationError):
        await ledger.update_entry(worker, entry.id, billable=True)

    updated = await ledger.update_entry(worker, entry.id, description="Espresso", tags=["coffee"])
    assert updated.description == "Espresso"
    assert updated.tags == ["coffee"]


async def test_open_break_counts_as_the_active_entry(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)

    on_break = await ledger.start_break(worker, BreakType.LUNCH, now=MORNING)
    with pytest.raises(AlreadyTrackingError) as excinfo:
        await ledger.start(worker, task.id, now=MORNING + timedelta(minutes=5))
    assert excinfo.value.details["activeEntry"]["isBreak"] is True

    stopped = await ledger.stop(worker, on_break.id, now=MORNING + timedelta(minutes=30))
    assert stopped.duration_seconds == 1800


async def test_update_entry_is_owner_or_admin_only(session, people) -> None:
    admin, worker, outsider, task = people
    ledger = TimeTrackingLedger(session)
    entry = await ledger.log_manual(worker, task.id, MORNING, MORNING + timedelta(hours=1), now=NOW)

    with pytest.raises(NotFoundError):
        await ledger.update_entry(outsider, entry.id, description="Not mine")

    updated = await ledger.update_entry(admin, entry.id, billable=False, description=None)
    assert updated.billable is False
    assert updated.description is None


async def test_daily_summary_splits_work_breaks_and_billable(session, seed, people) -> None:
    admin, worker, _, task = people
    second = await seed.task(admin, title="Second", assignees=[worker])
    ledger = TimeTrackingLedger(session)

    await ledger.log_manual(worker, task.id, MORNING, MORNING + timedelta(hours=1), now=NOW)
    await ledger.log_manual(
        worker,
        second.id,
        MORNING + timedelta(hours=2),
        MORNING + timedelta(hours=2, minutes=30),
        billable=False,
        now=NOW,
    )
    await ledger.log_break(
        worker,
        MORNING + timedelta(hours=1),
        MORNING + timedelta(hours=1, minutes=15),
        BreakType.COFFEE,
        now=NOW,
    )
    # Previous day; excluded.
    await ledger.log_manual(
        worker,
        task.id,
        MORNING - timedelta(days=1),
        MORNING - timedelta(days=1) + timedelta(hours=3),
        now=NOW,
    )
    # Still running; excluded.
    await ledger.start(worker, task.id, now=MORNING + timedelta(hours=4))

    summary = await ledger.daily_summary(worker.id, date(2026, 3, 2))

    assert summary.work_seconds == 5400
    assert summary.billable_seconds == 3600
    assert summary.break_seconds == 900
    assert summary.tasks_worked == 2
    assert summary.entry_count == 3


async def test_entries_for_task_pages_by_start_time(session, people) -> None:
    admin, worker, _, task = people
    ledger = TimeTrackingLedger(session)
    for offset in (2, 0, 1):
        start = MORNING + timedelta(hours=offset)
        await ledger.log_manual(worker, task.id, start, start + timedelta(minutes=30), now=NOW)
    await ledger.log_manual(admin, task.id, MORNING, MORNING + timedelta(minutes=10), now=NOW)

    first_page = await ledger.entries_for_task(task.id, limit=2)
    assert [entry.start_time for entry in first_page] == [MORNING, MORNING]

    second_page = await ledger.entries_for_task(task.id, after_id=first_page[-1].id, limit=2)
    assert [entry.start_time for entry in second_page] == [
        MORNING + timedelta(hours=1),
        MORNING + timedelta(hours=2),
    ]

    with pytest.raises(ValidationError):
        await ledger.entries_for_task(task.id + 1, after_id=first_page[-1].id)


async def test_list_entries_filters_by_day_and_kind(session, people) -> None:
    _, worker, _, task = people
    ledger = TimeTrackingLedger(session)
    await ledger.log_manual(worker, task.id, MORNING, MORNING + timedelta(hours=1), now=NOW)
    await ledger.log_break(worker, MORNING + timedelta(hours=1), MORNING + timedelta(hours=2), BreakType.LUNCH, now=NOW)
    await ledger.log_manual(
        worker,
        task.id,
        MORNING - timedelta(days=3),
        MORNING - timedelta(days=3) + timedelta(hours=1),
        now=NOW,
    )

    items, total = await ledger.list_entries(worker.id, start_date=date(2026, 3, 2), end_date=date(2026, 3, 2))
    assert total == 2
    assert [entry.is_break for entry in items] == [True, False]

    work_only, total_work = await ledger.list_entries(worker.id, include_breaks=False)
    assert total_work == 2
    assert not any(entry.is_break for entry in work_only)

    with pytest.raises(ValidationError):
        await ledger.list_entries(worker.id, start_date=date(2026, 3, 2), end_date=date(2026, 3, 1))


async def test_reaper_closes_stale_timers_at_the_timeout(session, people) -> None:
    admin, worker, _, task = people
    ledger = TimeTrackingLedger(session)
    stale = await ledger.start(worker, task.id, now=NOW - timedelta(hours=13))
    fresh = await ledger.start(admin, task.id, now=NOW - timedelta(hours=1))

    reaped = await ledger.reap_stale(now=NOW, timeout_minutes=12 * 60)

    assert [entry.id for entry in reaped] == [stale.id]
    closed = reaped[0]
    assert closed.closed_by_reaper is True
    assert closed.end_time == NOW - timedelta(hours=1)
    assert closed.duration_seconds == 12 * 3600
    assert (await ledger.active_entry_for(admin.id)).id == fresh.id
    assert await ledger.reap_stale(now=NOW, timeout_minutes=12 * 60) == []
