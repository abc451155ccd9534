from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .save_schema import SaveSchema


class RelationshipParameters(BaseModel):
    """
    Static configuration of one relationship.

    - store: handle of the association collection, or
    - store_class: class reference resolved per request (through the session
      scope when there is one, by direct instantiation otherwise)
    - main_identifier_field: association column holding the primary record id
    - secondary_identifier_field: association column holding the related id
    - should_clean: remove associations missing from the desired list (full
      reconciliation); when false only additive inserts are performed
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    store: Any = None
    store_class: Optional[type] = None
    main_identifier_field: str
    secondary_identifier_field: str
    should_clean: bool = False

    @model_validator(mode="after")
    def _exactly_one_store(self) -> "RelationshipParameters":
        if (self.store is None) == (self.store_class is None):
            raise ValueError("exactly one of store or store_class must be set")
        return self


class SaveConfig(BaseModel):
    """Immutable configuration of one save endpoint."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    entity: str
    save_schema: SaveSchema = Field(default_factory=SaveSchema)
    relationships: Mapping[str, RelationshipParameters] = Field(default_factory=dict)
    # report schema failures as VALIDATION_ERROR instead of INVALID_REQUEST_DATA
    distinct_validation_errors: bool = False


class DataToSave(BaseModel):
    """
    Validated request data. Only `main` is rewritten after validation (by the
    format and should-save hooks).
    """

    id: Any = None
    main: dict[str, Any] = Field(default_factory=dict)
    relationships: dict[str, list[Any]] = Field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        return self.id is None


class SaveRequest(BaseModel):
    """
    What the transport layer hands over: the entity name (defaults to the
    configured one), the record id taken from the path (None to create), the
    body and the parent path fields.
    """

    entity: Optional[str] = None
    record_id: Any = None
    data: Any = Field(default_factory=dict)
    parents: dict[str, Any] = Field(default_factory=dict)


class SaveResponse(BaseModel):
    status_code: int = 200
    body: Optional[dict[str, Any]] = None

    @classmethod
    def saved(cls, record_id: Any) -> "SaveResponse":
        return cls(status_code=200, body={"id": record_id})

    @classmethod
    def no_content(cls) -> "SaveResponse":
        return cls(status_code=204, body=None)
