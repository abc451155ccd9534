from .builder import setup_logging, make_dict_config
from .filters import (
    set_request_id,
    get_request_id,
    set_save_context,
    reset_save_context,
    get_save_context,
    RequestIdFilter,
    SaveContextFilter,
)
from .middleware import RequestIDMiddleware

__all__ = [
    "setup_logging",
    "make_dict_config",
    "set_request_id",
    "get_request_id",
    "set_save_context",
    "reset_save_context",
    "get_save_context",
    "RequestIdFilter",
    "SaveContextFilter",
    "RequestIDMiddleware",
]
