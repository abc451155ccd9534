"""
Payload schemas for a save endpoint.

A SaveSchema describes three independent parts of a request:

  - the record id (from the path), optional;
  - the main record: a pydantic model narrowing the payload, or None to keep
    the payload as-is (minus relationship fields);
  - the relationships: relationship name -> entry type, usually built with
    `relationship_entry`.

    schema = SaveSchema(
        id_type=int,
        main=ProductIn,
        relationships={
            "categories": relationship_entry(int),
            "images": relationship_entry(int, caption=(str, ...), is_cover=(bool, False)),
        },
    )
"""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, TypeAdapter, create_model

IdValue = Union[str, int]


def relationship_entry(id_type: Any = IdValue, **extra_fields: Any) -> Any:
    """
    Build the type of one relationship entry.

    Without extra fields an entry is either the bare secondary id or an object
    holding only that id (`3` or `{"id": 3}`).

    With extra fields, entries must be objects carrying `id` plus the declared
    fields (`{"id": 3, "caption": "Front"}`); undeclared keys are kept. Extra
    field definitions follow `pydantic.create_model`: a `(type, default)` tuple
    (`...` for required) or a bare type (required).
    """
    if not extra_fields:
        id_only = create_model(
            "RelationshipId",
            __config__=ConfigDict(extra="forbid"),
            id=(id_type, ...),
        )
        return Union[id_type, id_only]

    definitions = {
        name: spec if isinstance(spec, tuple) else (spec, ...)
        for name, spec in extra_fields.items()
    }
    return create_model(
        "RelationshipEntry",
        __config__=ConfigDict(extra="allow"),
        id=(id_type, ...),
        **definitions,
    )


class SaveSchema(BaseModel):
    """Validation rules for the id, main record and relationships of a save."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id_type: Any = IdValue
    main: Optional[type[BaseModel]] = None
    relationships: dict[str, Any] = Field(default_factory=dict)

    _id_adapter: TypeAdapter = PrivateAttr()
    _main_adapter: TypeAdapter = PrivateAttr()
    _relationships_model: type[BaseModel] = PrivateAttr()

    def model_post_init(self, __context: Any) -> None:
        self._id_adapter = TypeAdapter(Optional[self.id_type])
        self._main_adapter = TypeAdapter(dict[str, Any])
        self._relationships_model = create_model(
            "Relationships",
            __config__=ConfigDict(extra="ignore"),
            **{
                name: (list[entry_type], Field(default_factory=list))
                for name, entry_type in self.relationships.items()
            },
        )

    def validate_id(self, raw_id: Any) -> Any:
        return self._id_adapter.validate_python(raw_id)

    def validate_main(self, payload: Any, partial: bool = False) -> dict[str, Any]:
        """
        Narrow the payload to the main record. Creates get the model defaults;
        with `partial` (updates) only fields present in the request are kept,
        so an update patches exactly what was sent.
        """
        if self.main is not None:
            return self.main.model_validate(payload).model_dump(exclude_unset=partial)

        data = self._main_adapter.validate_python(payload)
        return {key: value for key, value in data.items() if key not in self.relationships}

    def validate_relationships(self, payload: Any) -> dict[str, list[Any]]:
        """
        Validate the declared relationship fields found in the payload. Names
        absent from the payload are absent from the result.
        """
        validated = self._relationships_model.model_validate(payload)
        # exclude_unset only at the top level; entry defaults must be kept
        dumped = validated.model_dump()
        return {name: dumped[name] for name in self.relationships if name in validated.model_fields_set}
