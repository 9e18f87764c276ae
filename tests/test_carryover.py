from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlmodel import select

from taskvision.core.config import Settings
from taskvision.models import TaskCarryover, TaskStatus, UserRole
from taskvision.services import CarryoverStats, CarryoverTracker

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


async def test_sweep_carries_over_once_per_day(session, seed) -> None:
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    overdue = await seed.task(admin, title="Overdue", due_date=NOW - timedelta(days=1))
    await seed.task(admin, title="Done", due_date=NOW - timedelta(days=1), status=TaskStatus.COMPLETED)
    await seed.task(admin, title="Later", due_date=NOW + timedelta(days=1))
    await seed.task(admin, title="Undated")
    tracker = CarryoverTracker(session)

    first = await tracker.sweep(NOW)
    assert [(update.task_id, update.carryover_count) for update in first] == [(overdue.id, 1)]
    assert first[0].swept_on == date(2026, 3, 10)
    assert first[0].new_due_date == first[0].previous_due_date

    assert await tracker.sweep(NOW + timedelta(hours=6)) == []

    second = await tracker.sweep(NOW + timedelta(days=1))
    assert [update.carryover_count for update in second] == [2]

    await session.refresh(overdue)
    assert overdue.carryover_count == 2
    assert overdue.last_carried_over_on == date(2026, 3, 11)
    assert overdue.original_due_date == NOW - timedelta(days=1)
    assert overdue.due_date == NOW - timedelta(days=1)

    history = (await session.execute(select(TaskCarryover).order_by(TaskCarryover.id))).scalars().all()
    assert [(row.swept_on, row.carryover_count) for row in history] == [
        (date(2026, 3, 10), 1),
        (date(2026, 3, 11), 2),
    ]


async def test_roll_forward_moves_the_due_date(session, seed) -> None:
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    original_due = NOW - timedelta(hours=3)
    task = await seed.task(admin, due_date=original_due)
    settings = Settings(environment="test", carryover_policy="roll-forward", carryover_roll_days=2)
    tracker = CarryoverTracker(session, settings)

    updates = await tracker.sweep(NOW)

    assert updates[0].previous_due_date == original_due
    assert updates[0].new_due_date == original_due + timedelta(days=2)
    await session.refresh(task)
    assert task.due_date == original_due + timedelta(days=2)
    assert task.original_due_date == original_due

    # No longer overdue after rolling forward.
    assert await tracker.sweep(NOW + timedelta(days=1)) == []


async def test_business_day_follows_the_configured_timezone(session) -> None:
    settings = Settings(environment="test", business_timezone="Asia/Colombo")
    tracker = CarryoverTracker(session, settings)

    late_evening_utc = datetime(2026, 3, 10, 20, 0, tzinfo=timezone.utc)
    assert tracker.business_day(late_evening_utc) == date(2026, 3, 11)
    assert tracker.day_start(date(2026, 3, 11)) == datetime(2026, 3, 10, 18, 30, tzinfo=timezone.utc)


async def test_summarize_buckets_by_calendar_day(session, seed) -> None:
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    worker = await seed.user("worker@example.com")
    overdue = await seed.task(admin, title="Overdue", assignees=[worker], due_date=datetime(2026, 3, 9, 10, 0))
    earlier_today = await seed.task(admin, title="Earlier today", due_date=datetime(2026, 3, 10, 8, 0))
    tonight = await seed.task(admin, title="Tonight", assignees=[worker], due_date=datetime(2026, 3, 10, 23, 0))
    tomorrow = await seed.task(admin, title="Tomorrow", due_date=datetime(2026, 3, 11, 9, 0))
    this_week = await seed.task(admin, title="This week", due_date=datetime(2026, 3, 17, 9, 0))
    await seed.task(admin, title="Far off", due_date=datetime(2026, 3, 18, 9, 0))
    await seed.task(admin, title="Done", due_date=datetime(2026, 3, 9, 10, 0), status=TaskStatus.COMPLETED)
    tracker = CarryoverTracker(session)

    summary = await tracker.summarize(NOW)

    assert [task.id for task in summary.overdue] == [overdue.id]
    assert [task.id for task in summary.due_today] == [earlier_today.id, tonight.id]
    assert [task.id for task in summary.due_tomorrow] == [tomorrow.id]
    assert [task.id for task in summary.due_within_7_days] == [this_week.id]

    scoped = await tracker.summarize(NOW, actor=worker)
    assert [task.id for task in scoped.overdue] == [overdue.id]
    assert [task.id for task in scoped.due_today] == [tonight.id]
    assert scoped.due_tomorrow == []
    assert scoped.due_within_7_days == []

    # Reading the summary never carries anything over.
    await session.refresh(overdue)
    assert overdue.carryover_count == 0


async def test_stats_over_visible_tasks(session, seed) -> None:
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    worker = await seed.user("worker@example.com")
    carried = await seed.task(admin, assignees=[worker], due_date=NOW - timedelta(days=2))
    await seed.task(admin, assignees=[worker])
    await seed.task(admin)
    tracker = CarryoverTracker(session)

    empty = await tracker.stats(actor=admin)
    assert empty.carryover_rate == 0.0

    await tracker.sweep(NOW - timedelta(days=1))
    await tracker.sweep(NOW)

    overall = await tracker.stats(actor=admin)
    assert overall.total_tasks == 3
    assert overall.carried_over_tasks == 1
    assert overall.carryover_rate == pytest.approx(100 / 3)
    assert overall.average_carryover_count == pytest.approx(2.0)

    mine = await tracker.stats(actor=worker)
    assert mine.total_tasks == 2
    assert mine.carryover_rate == pytest.approx(50.0)
    await session.refresh(carried)
    assert carried.carryover_count == 2


def test_stats_without_tasks_has_zero_rate() -> None:
    assert CarryoverStats(total_tasks=0, carried_over_tasks=0, average_carryover_count=0.0).carryover_rate == 0.0
