from .base import (
    ErrorCode,
    ApiSaveError,
    InvalidRequestDataError,
    InvalidEntityError,
    SchemaValidationError,
    DuplicatedKeyError,
    InternalSaveError,
    RelationshipConfigurationError,
    RepositoryError,
    InvalidFieldError,
)
from .mapper import classify_error, save_error_handler

__all__ = [
    "ErrorCode",
    "ApiSaveError",
    "InvalidRequestDataError",
    "InvalidEntityError",
    "SchemaValidationError",
    "DuplicatedKeyError",
    "InternalSaveError",
    "RelationshipConfigurationError",
    "RepositoryError",
    "InvalidFieldError",
    "classify_error",
    "save_error_handler",
]
