from __future__ import annotations

import logging

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from taskvision.core.logging import RequestContextFilter
from taskvision.errors import ApplicationError, GeofenceError, InvalidTransitionError
from taskvision.main import create_app
from taskvision.models import TaskStatus

pytestmark = pytest.mark.asyncio


@pytest.fixture()
def app():
    return create_app()


def _client(app, **transport_options) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app, **transport_options), base_url="http://test")


async def test_application_error_response_schema(app) -> None:
    @app.get("/error/application")
    async def trigger_application_error() -> None:  # pragma: no cover - defined in test
        raise ApplicationError(
            "Example failure",
            code="example_error",
            status_code=status.HTTP_418_IM_A_TEAPOT,
            details={"foo": "bar"},
        )

    async with _client(app) as client:
        response = await client.get("/error/application")

    assert response.status_code == status.HTTP_418_IM_A_TEAPOT
    payload = response.json()
    request_id = response.headers["X-Request-ID"]
    assert payload == {
        "code": "example_error",
        "message": "Example failure",
        "details": {"foo": "bar", "request_id": request_id},
    }


async def test_domain_errors_carry_their_details(app) -> None:
    @app.get("/error/geofence")
    async def trigger_geofence_error() -> None:  # pragma: no cover - defined in test
        raise GeofenceError(radius_meters=50, distance_meters=212.345)

    @app.get("/error/transition")
    async def trigger_transition_error() -> None:  # pragma: no cover - defined in test
        raise InvalidTransitionError(
            from_status=TaskStatus.NOT_STARTED.value,
            to_status=TaskStatus.PAUSED.value,
            allowed=[TaskStatus.IN_PROGRESS.value],
        )

    async with _client(app) as client:
        geofence = await client.get("/error/geofence")
        transition = await client.get("/error/transition")

    assert geofence.status_code == status.HTTP_403_FORBIDDEN
    assert geofence.json()["code"] == "geofence_required"
    assert geofence.json()["details"]["requiredRadiusMeters"] == 50
    assert geofence.json()["details"]["distanceMeters"] == 212.3

    assert transition.status_code == status.HTTP_409_CONFLICT
    details = transition.json()["details"]
    assert transition.json()["code"] == "invalid_transition"
    assert details["currentStatus"] == "not_started"
    assert details["requestedStatus"] == "paused"
    assert details["allowedStatuses"] == ["in_progress"]


async def test_validation_error_response_schema(app) -> None:
    class ExamplePayload(BaseModel):
        name: str

    @app.post("/error/validation")
    async def create_item(_: ExamplePayload) -> None:  # pragma: no cover - defined in test
        return None

    async with _client(app) as client:
        response = await client.post("/error/validation", json={})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    payload = response.json()
    request_id = response.headers["X-Request-ID"]
    assert payload["code"] == "validation_error"
    assert payload["message"] == "Request validation failed."
    assert "errors" in payload["details"]
    assert payload["details"]["request_id"] == request_id


async def test_not_found_error_response_schema(app) -> None:
    async with _client(app) as client:
        response = await client.get("/error/not-found")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    payload = response.json()
    request_id = response.headers["X-Request-ID"]
    assert payload["code"] == "not_found"
    assert payload["message"]
    assert payload["details"]["request_id"] == request_id


async def test_integrity_error_response_schema(app) -> None:
    @app.get("/error/database")
    async def trigger_integrity_error() -> None:  # pragma: no cover - defined in test
        raise IntegrityError("statement", {}, Exception("constraint"))

    async with _client(app) as client:
        response = await client.get("/error/database")

    assert response.status_code == status.HTTP_409_CONFLICT
    payload = response.json()
    request_id = response.headers["X-Request-ID"]
    assert payload["code"] == "db_integrity_error"
    assert payload["message"] == "Database integrity violation."
    assert payload["details"]["request_id"] == request_id


async def test_unhandled_error_hides_internal_details(app) -> None:
    @app.get("/error/unhandled")
    async def trigger_unhandled_error() -> None:  # pragma: no cover - defined in test
        raise RuntimeError("Sensitive detail")

    async with _client(app, raise_app_exceptions=False) as client:
        response = await client.get("/error/unhandled")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    payload = response.json()
    request_id = response.headers["X-Request-ID"]
    assert payload == {
        "code": "server_error",
        "message": "Internal server error.",
        "details": {"request_id": request_id},
    }
    assert "Sensitive" not in response.text


async def test_client_request_ids_are_echoed_when_well_formed(app) -> None:
    async with _client(app) as client:
        accepted = await client.get("/error/not-found", headers={"X-Request-ID": "edge-42:abc"})
        replaced = await client.get("/error/not-found", headers={"X-Request-ID": "not a valid id!"})

    assert accepted.headers["X-Request-ID"] == "edge-42:abc"
    assert accepted.json()["details"]["request_id"] == "edge-42:abc"
    assert replaced.headers["X-Request-ID"] != "not a valid id!"
    assert len(replaced.headers["X-Request-ID"]) == 36


class _InMemoryHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


async def test_request_id_attached_to_logs(app) -> None:
    logger = logging.getLogger("tests.error_handling")
    handler = _InMemoryHandler()
    handler.addFilter(RequestContextFilter())
    logger.addHandler(handler)
    original_level = logger.level
    logger.setLevel(logging.INFO)

    @app.get("/log")
    async def emit_log() -> dict[str, str]:  # pragma: no cover - defined in test
        logger.info("Log entry")
        return {"status": "ok"}

    try:
        async with _client(app) as client:
            response = await client.get("/log")
    finally:
        logger.removeHandler(handler)
        logger.setLevel(original_level)
        handler.close()

    request_id = response.headers["X-Request-ID"]
    matching = [record for record in handler.records if record.getMessage() == "Log entry"]
    assert matching
    assert getattr(matching[0], "request_id", None) == request_id
