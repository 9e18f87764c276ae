"""Domain error taxonomy and the handlers that render it as JSON envelopes."""

from __future__ import annotations

import logging
from contextvars import Token
from http import HTTPStatus
from typing import Any, Mapping

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from .core.context import REQUEST_ID_HEADER, bind_request_id, reset_request_id
from .schemas.system import ErrorResponse

logger = logging.getLogger(__name__)


class ApplicationError(Exception):
    """Base class for domain-specific errors.

    Every domain error is terminal: the core never retries it and callers get
    the ``code`` plus structured ``details`` describing what to fix.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "application_error",
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details


class NotFoundError(ApplicationError):
    def __init__(
        self,
        message: str = "Resource not found.",
        *,
        code: str = "not_found",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ValidationError(ApplicationError):
    """Bad coordinates, out-of-range radius, inverted time range and the like."""

    def __init__(
        self,
        message: str = "Validation failed.",
        *,
        code: str = "validation_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class PermissionDeniedError(ApplicationError):
    def __init__(
        self,
        message: str = "You are not permitted to perform this action.",
        *,
        code: str = "permission_denied",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class GeofenceError(ApplicationError):
    """The actor was not (provably) inside the task's radius."""

    def __init__(
        self,
        message: str = "You must be at the task location to change its status.",
        *,
        radius_meters: float,
        distance_meters: float | None = None,
        code: str = "geofence_required",
    ) -> None:
        details: dict[str, Any] = {"requiredRadiusMeters": radius_meters}
        if distance_meters is not None:
            details["distanceMeters"] = round(distance_meters, 1)
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )
        self.radius_meters = radius_meters
        self.distance_meters = distance_meters


class ConflictError(ApplicationError):
    """Optimistic concurrency failure; carries the authoritative status."""

    def __init__(
        self,
        message: str = "The task was changed by someone else.",
        *,
        current_status: str | None = None,
        code: str = "conflict",
        details: dict[str, Any] | None = None,
    ) -> None:
        payload = dict(details or {})
        if current_status is not None:
            payload["currentStatus"] = current_status
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            details=payload or None,
        )
        self.current_status = current_status


class InvalidTransitionError(ConflictError):
    def __init__(
        self,
        *,
        from_status: str,
        to_status: str,
        allowed: list[str],
    ) -> None:
        super().__init__(
            f"Cannot move a task from {from_status} to {to_status}.",
            current_status=from_status,
            code="invalid_transition",
            details={"requestedStatus": to_status, "allowedStatuses": allowed},
        )


class AlreadyTrackingError(ConflictError):
    """The user already has an active time entry."""

    def __init__(
        self,
        message: str = "You already have an active timer.",
        *,
        active_entry: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="already_tracking",
            details={"activeEntry": dict(active_entry) if active_entry is not None else None},
        )
        self.active_entry = active_entry


class DatabaseIntegrityError(ApplicationError):
    def __init__(
        self,
        message: str = "Database integrity violation.",
        *,
        code: str = "db_integrity_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class ServerError(ApplicationError):
    def __init__(
        self,
        message: str = "Internal server error.",
        *,
        code: str = "server_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


_HTTP_STATUS_CODE_MAP: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
    status.HTTP_503_SERVICE_UNAVAILABLE: "service_unavailable",
}


def _bind_request_context(request: Request) -> Token[str] | None:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        return None
    return bind_request_id(request_id)


def _reset_request_context(token: Token[str] | None) -> None:
    if token is not None:
        reset_request_id(token)


def _merge_details_with_request(request: Request, details: Any | None) -> Any | None:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        return details
    if details is None:
        return {"request_id": request_id}
    if isinstance(details, dict):
        return {"request_id": request_id, **details}
    return {"request_id": request_id, "detail": details}


def _error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        code=code,
        message=message,
        details=_merge_details_with_request(request, details),
    )
    response = JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))
    if headers:
        response.headers.update(headers)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


def _http_exception_details(status_code: int, detail: Any) -> tuple[str, Any | None]:
    if isinstance(detail, str):
        return detail, None
    try:
        status_phrase = HTTPStatus(status_code).phrase
    except ValueError:
        status_phrase = "Error"
    if detail is None:
        return status_phrase, None
    if isinstance(detail, list):
        return status_phrase, {"errors": detail}
    return status_phrase, detail


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the provided FastAPI app."""

    @app.exception_handler(ApplicationError)
    async def _handle_application_error(
        request: Request,
        exc: ApplicationError,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            log = logger.error if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.warning
            log(
                "Application error encountered",
                extra={
                    "code": exc.code,
                    "status_code": exc.status_code,
                    "path": str(request.url.path),
                    "details": exc.details,
                },
            )
            return _error_response(
                request,
                status_code=exc.status_code,
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        finally:
            _reset_request_context(token)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            errors = [
                {key: value for key, value in error.items() if key in {"type", "loc", "msg"}}
                for error in exc.errors()
            ]
            logger.warning("Request validation failed", extra={"errors": errors})
            return _error_response(
                request,
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                code="validation_error",
                message="Request validation failed.",
                details={"errors": errors},
            )
        finally:
            _reset_request_context(token)

    @app.exception_handler(IntegrityError)
    async def _handle_integrity_error(
        request: Request,
        exc: IntegrityError,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            logger.error("Database integrity error encountered.", exc_info=exc)
            return _error_response(
                request,
                status_code=status.HTTP_409_CONFLICT,
                code="db_integrity_error",
                message="Database integrity violation.",
            )
        finally:
            _reset_request_context(token)

    @app.exception_handler(SQLAlchemyError)
    async def _handle_storage_error(
        request: Request,
        exc: SQLAlchemyError,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            logger.error(
                "Storage failure while handling request.",
                exc_info=exc,
                extra={"path": str(request.url.path), "method": request.method},
            )
            return _error_response(
                request,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                code="server_error",
                message="Internal server error.",
            )
        finally:
            _reset_request_context(token)

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            code = _HTTP_STATUS_CODE_MAP.get(exc.status_code, "http_error")
            message, extra_details = _http_exception_details(exc.status_code, exc.detail)
            log = logger.error if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.warning
            log(
                "HTTP exception raised",
                extra={"code": code, "status_code": exc.status_code, "path": str(request.url.path)},
            )
            return _error_response(
                request,
                status_code=exc.status_code,
                code=code,
                message=message,
                details=extra_details,
                headers=exc.headers or None,
            )
        finally:
            _reset_request_context(token)

    @app.exception_handler(Exception)
    async def _handle_unhandled_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        token = _bind_request_context(request)
        try:
            logger.error("Unhandled application error.", exc_info=exc)
            return _error_response(
                request,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                code="server_error",
                message="Internal server error.",
            )
        finally:
            _reset_request_context(token)


__all__ = [
    "AlreadyTrackingError",
    "ApplicationError",
    "ConflictError",
    "DatabaseIntegrityError",
    "GeofenceError",
    "InvalidTransitionError",
    "NotFoundError",
    "PermissionDeniedError",
    "ServerError",
    "ValidationError",
    "register_exception_handlers",
]
