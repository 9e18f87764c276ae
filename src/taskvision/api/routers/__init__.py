"""Router registrations for the TaskVision API."""

from __future__ import annotations

from fastapi import APIRouter

from .health import router as health_router
from .jobs import router as jobs_router
from .tasks import router as tasks_router
from .time_tracking import router as time_tracking_router

api_router = APIRouter()
api_router.include_router(tasks_router)
api_router.include_router(time_tracking_router)
api_router.include_router(jobs_router)

__all__ = ["api_router", "health_router", "jobs_router", "tasks_router", "time_tracking_router"]
