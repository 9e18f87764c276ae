"""Health and readiness endpoints."""

from __future__ import annotations

import logging

import sqlalchemy as sa
from fastapi import APIRouter, Response, status
from sqlalchemy.exc import SQLAlchemyError

from ...deps import DatabaseSessionDependency
from ...schemas.system import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.get(
    "/healthz",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def read_health(session: DatabaseSessionDependency, response: Response) -> HealthCheckResponse:
    """Heartbeat plus a trivial database round-trip."""

    try:
        await session.execute(sa.text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("Database health check failed.", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthCheckResponse(status="degraded", database="unavailable")
    return HealthCheckResponse(status="ok", database="ok")
