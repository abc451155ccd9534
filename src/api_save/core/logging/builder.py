"""
Build and apply the dictConfig logging configuration from Settings.

    setup_logging(get_settings())

is called once at start-up (and by the test session). Records emitted by the
save pipeline then carry the request id and the entity/record being saved.
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config

from api_save.config.settings import Settings
from api_save.utils.project import get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, SaveContextFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(entity)s | %(message)s"

# Third-party loggers routed explicitly; everything else goes through the root.
_FRAMEWORK_LOGGERS = ("uvicorn.error", "uvicorn.access", "sqlalchemy.engine")


def _writes_files(settings: Settings) -> bool:
    return (not settings.LOG_TO_STDOUT) and bool(settings.LOG_DIR)


def _handlers(settings: Settings) -> dict[str, dict]:
    handlers = {"console": get_console_handler(settings)}
    if _writes_files(settings):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)
    return handlers


def _framework_logger(name: str, settings: Settings, handler_names: list[str]) -> dict:
    if name == "sqlalchemy.engine":
        # statement echo is opt-in; it is noisy and may contain row values
        level = "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING"
        return {"level": level, "handlers": ["console"], "propagate": False}
    if name == "uvicorn.access":
        return {"level": "INFO", "handlers": ["console"], "propagate": False}
    return {"level": settings.LOG_LEVEL, "handlers": handler_names, "propagate": False}


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping:
      - formatters: "standard" (colour for text, plain otherwise) and "json"
      - filters: "request_id", "save_context", "redact"
      - handlers: console plus file/error_file, or error_console when logging to stdout
      - loggers: root, api_save, uvicorn.*, sqlalchemy.engine
    """
    handlers = _handlers(settings)
    handler_names = list(handlers)

    loggers = {
        "": {"handlers": handler_names, "level": settings.LOG_LEVEL, "propagate": True},
        "api_save": {"level": settings.LOG_LEVEL, "propagate": True},
    }
    loggers.update({name: _framework_logger(name, settings, handler_names) for name in _FRAMEWORK_LOGGERS})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
                "format": TEXT_FORMAT,
            },
            "json": {
                "()": JsonFormatter,
                "env": settings.ENV,
                "service": get_project_name(),
            },
        },
        "filters": {
            "request_id": {"()": RequestIdFilter},
            "save_context": {"()": SaveContextFilter},
            "redact": {"()": RedactFilter},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging(settings: Settings) -> None:
    """
    Apply the configuration. The log directory is created when file handlers
    are used. The root logger gets the context filters as well, so records
    formatted outside the configured handlers still carry request_id and entity.
    """
    if _writes_files(settings):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))

    root = logging.getLogger()
    for existing in [f for f in root.filters if isinstance(f, (RequestIdFilter, SaveContextFilter))]:
        root.removeFilter(existing)
    root.addFilter(RequestIdFilter())
    root.addFilter(SaveContextFilter())
