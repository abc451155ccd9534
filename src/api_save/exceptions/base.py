"""
Exceptions raised by the save pipeline.

Two families:
  - ApiSaveError and its subclasses: the stable, client-facing taxonomy every
    failed save ends in (one ErrorCode per kind).
  - RepositoryError and friends: raised by storage handles for misuse (unknown
    columns, empty filters). They are raw failures for the classifier.
"""

from enum import IntEnum
from typing import Iterable


class ErrorCode(IntEnum):
    INVALID_REQUEST_DATA = 1
    INVALID_ENTITY = 2
    VALIDATION_ERROR = 3
    DUPLICATED_KEY_ERROR = 98
    INTERNAL_ERROR = 99


class ApiSaveError(Exception):
    """
    Classified save failure.

    - message: human-friendly message
    - code: ErrorCode kind
    - previous_error: the raw exception this error wraps (diagnostics only)
    - fields: optional field names involved (duplicate keys)
    - status_code: explicit response code; defaults to the code's status
    """

    name = "ApiSaveError"

    CODE_TO_STATUS = {
        ErrorCode.INVALID_REQUEST_DATA: 400,
        ErrorCode.INVALID_ENTITY: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.DUPLICATED_KEY_ERROR: 400,
        ErrorCode.INTERNAL_ERROR: 500,
    }

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL_ERROR, *,
                 previous_error: BaseException | None = None,
                 fields: Iterable[str] | None = None,
                 status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.previous_error = previous_error
        self.fields = list(fields) if fields else None
        self.status_code = status_code

    def __str__(self) -> str:
        if self.fields:
            return f"{self.message} (fields: {', '.join(self.fields)}; code: {int(self.code)})"
        return f"{self.message} (code: {int(self.code)})"

    def to_payload(self) -> dict:
        """
        JSON-serializable response body:
            {"message": "...", "code": 98, "name": "ApiSaveError", "fields": [...]}
        The previous error is never part of the payload.
        """
        payload = {"message": self.message, "code": int(self.code), "name": self.name}
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload

    def http_status(self) -> int:
        if self.status_code is not None:
            return self.status_code
        return self.CODE_TO_STATUS.get(self.code, 500)


class InvalidRequestDataError(ApiSaveError):
    """Payload or id rejected by the schema, or by a post-validation hook."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.INVALID_REQUEST_DATA, **kwargs)


class InvalidEntityError(ApiSaveError):
    """No storage handle could be resolved for an entity or relationship store."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.INVALID_ENTITY, **kwargs)


class SchemaValidationError(ApiSaveError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, **kwargs)


class DuplicatedKeyError(ApiSaveError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.DUPLICATED_KEY_ERROR, **kwargs)


class InternalSaveError(ApiSaveError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCode.INTERNAL_ERROR, **kwargs)


class RelationshipConfigurationError(RuntimeError):
    """A relationship present in the payload has no RelationshipParameters."""

    def __init__(self, relationship: str):
        super().__init__(f"relationshipParameters not defined for {relationship}")
        self.relationship = relationship


# storage-level exceptions

class RepositoryError(Exception):
    """
    Base exception for storage handle errors.

    - fields: optional list of field names related to the error
    """

    def __init__(self, message: str, *, fields: Iterable[str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields) if fields else None

    def __str__(self) -> str:
        if self.fields:
            return f"{self.message} (fields: {', '.join(self.fields)})"
        return self.message


class InvalidFieldError(RepositoryError):
    """Raised when a record or filter names columns the model does not map."""


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
]
