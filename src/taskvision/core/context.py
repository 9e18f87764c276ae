"""Request-scoped correlation state shared by middleware, handlers and jobs."""

from __future__ import annotations

from contextvars import ContextVar, Token

REQUEST_ID_HEADER = "X-Request-ID"
_UNSET = "-"

_request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default=_UNSET)
_actor_id_ctx_var: ContextVar[str] = ContextVar("actor_id", default=_UNSET)


def get_request_id() -> str:
    """Return the request identifier for the current execution context."""

    return _request_id_ctx_var.get()


def bind_request_id(request_id: str) -> Token[str]:
    return _request_id_ctx_var.set(request_id)


def reset_request_id(token: Token[str]) -> None:
    _request_id_ctx_var.reset(token)


def clear_request_id() -> None:
    _request_id_ctx_var.set(_UNSET)


def get_actor_id() -> str:
    """Return the authenticated user id bound to the current request, or ``-``."""

    return _actor_id_ctx_var.get()


def bind_actor_id(actor_id: int | str) -> Token[str]:
    return _actor_id_ctx_var.set(str(actor_id))


def reset_actor_id(token: Token[str]) -> None:
    _actor_id_ctx_var.reset(token)


__all__ = [
    "REQUEST_ID_HEADER",
    "bind_actor_id",
    "bind_request_id",
    "clear_request_id",
    "get_actor_id",
    "get_request_id",
    "reset_actor_id",
    "reset_request_id",
]
