"""
Logging filters.

Context values (request id, the entity and record being saved) live in
`contextvars` so they follow a request across `await` boundaries and into the
tasks spawned by the relationship fan-out. Filters copy them onto every
`LogRecord` so formatters can reference them without KeyErrors.
"""

import logging
from logging import LogRecord
import contextvars
from typing import Any

_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)

_save_context_ctx: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "save_context", default=None
)


def set_request_id(request_id: str | None):
    """Set the request id for the current context; returns a token for reset_request_id()."""
    return _request_id_ctx.set(request_id)


def reset_request_id(token):
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


def set_save_context(entity: str | None, record_id: Any = None):
    """
    Bind the entity name and record id of the save being handled to the current
    context. Returns a token for reset_save_context().
    """
    return _save_context_ctx.set({"entity": entity, "record_id": record_id})


def reset_save_context(token):
    _save_context_ctx.reset(token)


def get_save_context() -> dict[str, Any]:
    return _save_context_ctx.get() or {}


class RequestIdFilter(logging.Filter):
    """
    Guarantee every record has a `request_id`: an explicit `extra` value wins,
    then the contextvar, then the "-" sentinel.
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class SaveContextFilter(logging.Filter):
    """
    Stamp `entity` and `record_id` of the save in progress onto records that
    did not set them explicitly.
    """

    def filter(self, record: LogRecord) -> bool:
        context = get_save_context()
        for key in ("entity", "record_id"):
            if getattr(record, key, None) is None:
                setattr(record, key, context.get(key))
        return True


class RedactFilter(logging.Filter):
    SENSITIVE = {"password", "secret", "token", "access_token", "refresh_token", "authorization"}

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = "***REDACTED***"
        return True
