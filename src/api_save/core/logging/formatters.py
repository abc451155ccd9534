"""
Log formatters.

  - JsonFormatter: one JSON object per line for log collectors. Service
    identity, the request id and the save being handled come first, then
    whatever the call site passed in `extra`.
  - ColorFormatter: compact ANSI-coloured lines for local consoles
    (LOG_FORMAT=text).
"""

import json
import logging
from typing import Any
from logging import LogRecord

from api_save.utils.project import get_project_version

PROJECT_VERSION = get_project_version()

# Attributes every LogRecord carries; anything else came from `extra`.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Stamped by the context filters; rendered as top-level fields, not extras.
_CONTEXT_FIELDS = ("request_id", "entity", "record_id")


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter. Never raises on odd extras: values that do not
    serialise are rendered with str().
    """

    def __init__(self, *, env: str | None = None, service: str = "api-save", datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self.env = env
        self.service = service

    def _context(self, record: LogRecord) -> dict[str, Any]:
        context = {name: _json_safe(getattr(record, name, None)) for name in _CONTEXT_FIELDS}
        context["request_id"] = context["request_id"] or "-"
        return context

    def _extras(self, record: LogRecord) -> dict[str, Any]:
        return {
            key: _json_safe(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED and key not in _CONTEXT_FIELDS and not key.startswith("_")
        }

    def format(self, record: LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "env": self.env,
            "version": PROJECT_VERSION,
            **self._context(record),
            "pathname": record.pathname,
            "lineno": record.lineno,
        }

        for key, value in self._extras(record).items():
            log_record.setdefault(key, value)

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    Line layout: time | level | logger | request id | entity[#record] | message.
    Only the level is coloured.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;41m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _save_label(record: LogRecord) -> str:
        entity = getattr(record, "entity", None)
        if not entity:
            return "-"
        record_id = getattr(record, "record_id", None)
        return entity if record_id is None else f"{entity}#{record_id}"

    def format(self, record: LogRecord) -> str:
        level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{record.levelname:<8}{self.RESET}"
        columns = [
            self.formatTime(record, self.datefmt),
            level,
            f"{record.name:<30}",
            f"{getattr(record, 'request_id', '-'):<10}",
            f"{self._save_label(record):<16}",
            record.getMessage(),
        ]
        line = " | ".join(columns)

        if record.exc_info:
            line = line + "\n" + self.formatException(record.exc_info)
        return line
