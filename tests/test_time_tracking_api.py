from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi import status

from taskvision.deps import get_now
from taskvision.models import UserRole

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 3, 2, 17, 0, tzinfo=timezone.utc)


@pytest.fixture
async def worker_task(app, seed):
    app.dependency_overrides[get_now] = lambda: NOW
    admin = await seed.user("admin@example.com", role=UserRole.ADMIN)
    worker = await seed.user("worker@example.com")
    task = await seed.task(admin, assignees=[worker], estimate_minutes=60)
    return admin, worker, task


async def test_timer_lifecycle(client, worker_task, auth_headers) -> None:
    _, worker, task = worker_task
    headers = auth_headers(worker)
    task_id = task.id

    started = await client.post(
        "/api/time-tracking/start",
        json={"taskId": task_id, "description": "Survey", "tags": ["site"]},
        headers=headers,
    )
    assert started.status_code == status.HTTP_200_OK
    entry_id = started.json()["entryId"]
    assert started.json()["entry"]["isActive"] is True
    assert started.json()["entry"]["source"] == "timer"

    again = await client.post("/api/time-tracking/start", json={"taskId": task_id}, headers=headers)
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["details"]["activeEntry"]["id"] == entry_id

    active = await client.get("/api/time-tracking/active", headers=headers)
    assert active.json()["entry"]["id"] == entry_id

    stopped = await client.post(
        f"/api/time-tracking/stop/{entry_id}",
        json={"description": "Survey done"},
        headers=headers,
    )
    assert stopped.status_code == status.HTTP_200_OK
    assert list(stopped.json()) == ["entry"]
    stopped_entry = stopped.json()["entry"]
    assert stopped_entry["id"] == entry_id
    assert stopped_entry["isActive"] is False
    assert stopped_entry["durationSeconds"] == 0
    assert stopped_entry["description"] == "Survey done"

    missing = await client.post(f"/api/time-tracking/stop/{entry_id}", headers=headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_stop_all_is_idempotent(client, worker_task, auth_headers) -> None:
    _, worker, task = worker_task
    headers = auth_headers(worker)

    await client.post("/api/time-tracking/start", json={"taskId": task.id}, headers=headers)

    first = await client.post("/api/time-tracking/stop-all", headers=headers)
    assert len(first.json()["stopped"]) == 1
    second = await client.post("/api/time-tracking/stop-all", headers=headers)
    assert second.json() == {"stopped": []}


async def test_manual_entries_breaks_and_daily_summary(client, worker_task, auth_headers) -> None:
    _, worker, task = worker_task
    headers = auth_headers(worker)
    task_id = task.id

    manual = await client.post(
        "/api/time-tracking/manual",
        json={
            "taskId": task_id,
            "startTime": "2026-03-02T08:00:00Z",
            "endTime": "2026-03-02T09:30:00Z",
            "description": "Paperwork",
        },
        headers=headers,
    )
    assert manual.status_code == status.HTTP_201_CREATED
    assert manual.json()["durationMinutes"] == 90
    assert manual.json()["source"] == "manual"

    overlap = await client.post(
        "/api/time-tracking/manual",
        json={"taskId": task_id, "startTime": "2026-03-02T09:00:00Z", "endTime": "2026-03-02T10:00:00Z"},
        headers=headers,
    )
    assert overlap.status_code == status.HTTP_409_CONFLICT
    assert overlap.json()["code"] == "overlapping_entry"

    future = await client.post(
        "/api/time-tracking/manual",
        json={"taskId": task_id, "startTime": "2026-03-02T16:00:00Z", "endTime": "2026-03-02T18:00:00Z"},
        headers=headers,
    )
    assert future.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    coffee = await client.post(
        "/api/time-tracking/break",
        json={"startTime": "2026-03-02T10:00:00Z", "endTime": "2026-03-02T10:15:00Z", "breakType": "coffee"},
        headers=headers,
    )
    assert coffee.status_code == status.HTTP_201_CREATED
    assert coffee.json()["isBreak"] is True
    assert coffee.json()["billable"] is False

    summary = await client.get("/api/time-tracking/summary/daily/2026-03-02", headers=headers)
    assert summary.json() == {
        "day": "2026-03-02",
        "workSeconds": 5400,
        "breakSeconds": 900,
        "billableSeconds": 5400,
        "workMinutes": 90.0,
        "breakMinutes": 15.0,
        "billableMinutes": 90.0,
        "tasksWorked": 1,
        "entryCount": 2,
    }

    logs = await client.get(
        "/api/time-tracking/logs",
        params={"startDate": "2026-03-02", "endDate": "2026-03-02", "includeBreaks": "false"},
        headers=headers,
    )
    assert logs.json()["total"] == 1
    assert logs.json()["items"][0]["description"] == "Paperwork"


async def test_open_break_and_entry_updates(client, worker_task, auth_headers) -> None:
    _, worker, task = worker_task
    headers = auth_headers(worker)

    on_break = await client.post("/api/time-tracking/break/start", json={"breakType": "lunch"}, headers=headers)
    assert on_break.status_code == status.HTTP_200_OK
    assert on_break.json()["breakType"] == "lunch"
    assert on_break.json()["isActive"] is True

    blocked = await client.post("/api/time-tracking/start", json={"taskId": task.id}, headers=headers)
    assert blocked.status_code == status.HTTP_409_CONFLICT

    break_id = on_break.json()["id"]
    await client.post(f"/api/time-tracking/stop/{break_id}", headers=headers)

    billable_break = await client.patch(f"/api/time-tracking/{break_id}", json={"billable": True}, headers=headers)
    assert billable_break.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    tagged = await client.patch(
        f"/api/time-tracking/{break_id}",
        json={"tags": ["canteen"], "description": "Rice and curry"},
        headers=headers,
    )
    assert tagged.status_code == status.HTTP_200_OK
    assert tagged.json()["tags"] == ["canteen"]
    assert tagged.json()["description"] == "Rice and curry"

    empty = await client.patch(f"/api/time-tracking/{break_id}", json={}, headers=headers)
    assert empty.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_timers_need_a_visible_task(client, seed, worker_task, auth_headers) -> None:
    outsider = await seed.user("outsider@example.com")
    _, _, task = worker_task

    response = await client.post(
        "/api/time-tracking/start",
        json={"taskId": task.id},
        headers=auth_headers(outsider),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "permission_denied"


async def test_entries_of_other_users_are_not_found(client, seed, worker_task, auth_headers) -> None:
    _, worker, task = worker_task
    colleague = await seed.user("colleague@example.com")
    started = await client.post("/api/time-tracking/start", json={"taskId": task.id}, headers=auth_headers(worker))
    entry_id = started.json()["entryId"]

    response = await client.post(f"/api/time-tracking/stop/{entry_id}", headers=auth_headers(colleague))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["details"]["entryId"] == entry_id
