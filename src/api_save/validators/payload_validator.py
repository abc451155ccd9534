"""
Request validation for the save pipeline.

    validator = PayloadValidator(config, registry)
    data = validator.validate_data(body, parents, record_id)
    handle = validator.validate_model(config.entity, scope)
"""
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from api_save.exceptions.base import (
    ApiSaveError,
    InvalidEntityError,
    InvalidRequestDataError,
    SchemaValidationError,
)
from api_save.repositories.base import StorageHandle
from api_save.repositories.registry import RepositoryRegistry, SessionScope
from api_save.schemas.save_data import DataToSave, SaveConfig
from api_save.schemas.save_schema import SaveSchema

logger = logging.getLogger(__name__)


def _input_path(loc: tuple, raw: Any, missing: bool) -> list[Any]:
    """
    Keep the leading `loc` parts that address the raw input. Union members
    add their type name to `loc`; those tags are not input keys and end the
    path. A trailing unknown key is kept for "missing" errors.
    """
    path = []
    value = raw
    for position, part in enumerate(loc):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        elif isinstance(value, (list, tuple)) and isinstance(part, int) and 0 <= part < len(value):
            value = value[part]
        elif missing and isinstance(value, Mapping) and position == len(loc) - 1:
            path.append(part)
            break
        else:
            break
        path.append(part)
    return path


def format_validation_error(exc: ValidationError, prefix: str, raw: Any) -> tuple[str, str]:
    """
    Return (message, dot.path) for the first failing field, the path rooted
    at `prefix` ("id", "main" or "relationships").
    """
    first = exc.errors()[0]
    parts = _input_path(tuple(first["loc"]), raw, first["type"] == "missing")
    path = ".".join(str(part) for part in (prefix, *parts))
    return f"{first['msg']} in {path}", path


def merge_parents(payload: Any, parents: Mapping[str, Any] | None) -> Any:
    """Parent path fields are validated and stored like body fields; the path wins."""
    if not parents or not isinstance(payload, Mapping):
        return payload
    return {**payload, **parents}


class PayloadValidator:

    def __init__(self, config: SaveConfig, registry: RepositoryRegistry):
        self.config = config
        self.registry = registry

    def _schema_error(self, message: str, path: str) -> ApiSaveError:
        error_cls = SchemaValidationError if self.config.distinct_validation_errors else InvalidRequestDataError
        return error_cls(message, fields=[path])

    def validate_data(self, raw_payload: Any, raw_parents: Mapping[str, Any] | None,
                      raw_id: Any, schema: SaveSchema | None = None) -> DataToSave:
        """
        Validate id, main record and relationships independently against the
        schema (the configured one unless `schema` is given).

        Raises:
            InvalidRequestDataError (or SchemaValidationError when configured)
            with the message "<reason> in <dot.path>".
        """
        schema = schema or self.config.save_schema
        payload = merge_parents(raw_payload, raw_parents)
        validated: dict[str, Any] = {}

        steps = (
            ("id", schema.validate_id, raw_id),
            ("main", lambda value: schema.validate_main(value, partial=validated["id"] is not None), payload),
            ("relationships", schema.validate_relationships, payload),
        )

        for part, validate, value in steps:
            try:
                validated[part] = validate(value)
            except ValidationError as exc:
                message, path = format_validation_error(exc, part, value)
                logger.info(
                    "validator.invalid_payload",
                    extra={"entity": self.config.entity, "path": path},
                )
                raise self._schema_error(message, path) from exc

        return DataToSave(**validated)

    def validate_model(self, entity: str, scope: SessionScope | None = None) -> StorageHandle:
        """
        Resolve the storage handle of the primary entity.

        Raises:
            InvalidEntityError: when the entity cannot be resolved.
        """
        try:
            return self.registry.resolve(entity, scope)
        except LookupError as exc:
            logger.info("validator.invalid_entity", extra={"entity": entity})
            raise InvalidEntityError(str(exc.args[0]) if exc.args else f"Invalid entity {entity}") from exc
