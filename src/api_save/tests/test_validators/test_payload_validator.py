import pytest
from pydantic import ValidationError

from api_save.exceptions.base import ErrorCode, InvalidEntityError, InvalidRequestDataError, SchemaValidationError
from api_save.repositories.registry import RepositoryRegistry
from api_save.schemas.save_data import SaveConfig
from api_save.schemas.save_schema import SaveSchema, relationship_entry
from api_save.validators.payload_validator import PayloadValidator, merge_parents
from ..test_fixtures.models import Product


@pytest.fixture
def validator(product_config, fake_registry) -> PayloadValidator:
    return PayloadValidator(product_config, fake_registry)


class TestValidateData:

    def test_valid_payload_is_split_into_parts(self, validator):
        data = validator.validate_data(
            {"code": "DESK", "name": "Desk", "categories": [1, {"id": 2}], "images": [{"id": 3}]},
            None,
            "7",
        )

        assert data.id == 7
        assert data.main == {"code": "DESK", "name": "Desk"}
        assert data.relationships == {
            "categories": [1, {"id": 2}],
            "images": [{"id": 3, "caption": None, "is_cover": False}],
        }
        assert not data.is_new

    def test_only_relationships_present_in_payload_are_kept(self, validator):
        data = validator.validate_data({"code": "DESK", "name": "Desk", "images": []}, None, None)

        assert data.relationships == {"images": []}
        assert data.is_new

    def test_main_keeps_only_fields_that_were_sent(self, validator):
        """
        Behavior:
                - An update sends `name` only; `price` has a default in the model.
                - `main` holds `name` alone.

        Importance:
                - Defaults must not overwrite stored values on partial updates.
        """
        data = validator.validate_data({"name": "Desk", "code": "D"}, None, 1)

        assert data.main == {"name": "Desk", "code": "D"}
        assert "price" not in data.main

    def test_parents_are_merged_and_win(self):
        config = SaveConfig(entity="product", save_schema=SaveSchema(id_type=int))
        validator = PayloadValidator(config, RepositoryRegistry())

        data = validator.validate_data({"name": "Shelf", "store_id": 1}, {"store_id": 4}, None)

        assert data.main == {"name": "Shelf", "store_id": 4}

    def test_invalid_main_field_reports_path(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({"name": "Desk"}, None, None)

        error = exc_info.value
        assert error.code is ErrorCode.INVALID_REQUEST_DATA
        assert error.message == "Field required in main.code"
        assert error.fields == ["main.code"]

    def test_invalid_relationship_entry_reports_index(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({"code": "D", "name": "Desk", "images": [{"caption": "no id"}]}, None, None)

        assert exc_info.value.fields == ["relationships.images.0.id"]
        assert exc_info.value.message.endswith(" in relationships.images.0.id")

    def test_relationship_must_be_a_list(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({"code": "D", "name": "Desk", "categories": 3}, None, None)

        assert exc_info.value.fields == ["relationships.categories"]

    def test_invalid_id_reports_id_path(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({"code": "D", "name": "Desk"}, None, "not-a-number")

        assert exc_info.value.fields == ["id"]
        assert exc_info.value.message.endswith(" in id")

    def test_id_is_checked_before_main(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({}, None, "not-a-number")

        assert exc_info.value.fields == ["id"]

    def test_distinct_validation_errors_switches_code(self, product_schema, fake_registry):
        config = SaveConfig(entity="product", save_schema=product_schema, distinct_validation_errors=True)

        with pytest.raises(SchemaValidationError) as exc_info:
            PayloadValidator(config, fake_registry).validate_data({"name": "Desk"}, None, None)

        assert exc_info.value.code is ErrorCode.VALIDATION_ERROR
        assert exc_info.value.http_status() == 400

    def test_non_object_payload_is_rejected(self, validator):
        with pytest.raises(InvalidRequestDataError):
            validator.validate_data(["not", "an", "object"], None, None)

    def test_create_keeps_main_model_defaults(self, validator):
        data = validator.validate_data({"code": "D", "name": "Desk"}, None, None)

        assert data.main == {"code": "D", "name": "Desk", "price": None}

    def test_zero_id_is_an_update(self, validator):
        data = validator.validate_data({"code": "D", "name": "Desk"}, None, 0)

        assert data.id == 0
        assert not data.is_new
        assert data.main == {"code": "D", "name": "Desk"}


class TestErrorPaths:
    """Reported paths address the request input, never the type of a union member."""

    @pytest.fixture
    def tags_validator(self, fake_registry):
        schema = SaveSchema(id_type=int, relationships={"tags": relationship_entry(int)})
        return PayloadValidator(SaveConfig(entity="product", save_schema=schema), fake_registry)

    def test_bad_bare_entry_names_the_entry(self, tags_validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            tags_validator.validate_data({"name": "x", "tags": ["abc"]}, None, None)

        assert exc_info.value.fields == ["relationships.tags.0"]
        assert exc_info.value.message.endswith(" in relationships.tags.0")

    def test_bad_id_only_entry_names_the_entry(self, tags_validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            tags_validator.validate_data({"name": "x", "tags": [1, {"id": "abc"}]}, None, None)

        assert exc_info.value.fields == ["relationships.tags.1"]

    def test_bad_id_under_default_schema(self, fake_registry):
        validator = PayloadValidator(SaveConfig(entity="product"), fake_registry)

        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data({"name": "x"}, None, [1])

        assert exc_info.value.fields == ["id"]
        assert exc_info.value.message.endswith(" in id")

    def test_nested_field_of_a_present_entry_is_kept(self, validator):
        with pytest.raises(InvalidRequestDataError) as exc_info:
            validator.validate_data(
                {"code": "D", "name": "Desk", "images": [{"id": 1, "is_cover": "maybe"}]}, None, None,
            )

        assert exc_info.value.fields == ["relationships.images.0.is_cover"]


class TestRelationshipEntry:

    def test_bare_or_id_only_entries(self):
        schema = SaveSchema(relationships={"tags": relationship_entry(int)})

        assert schema.validate_relationships({"tags": [1, {"id": 2}]}) == {"tags": [1, {"id": 2}]}

    def test_id_only_entries_reject_other_keys(self):
        schema = SaveSchema(relationships={"tags": relationship_entry(int)})

        with pytest.raises(ValidationError):
            schema.validate_relationships({"tags": [{"id": 2, "weight": 1}]})

    def test_entries_with_extra_fields_keep_undeclared_keys(self):
        schema = SaveSchema(relationships={"images": relationship_entry(int, caption=str)})

        assert schema.validate_relationships({"images": [{"id": 1, "caption": "a", "alt": "b"}]}) == {
            "images": [{"id": 1, "caption": "a", "alt": "b"}],
        }

    def test_default_main_schema_drops_relationship_fields(self):
        schema = SaveSchema(relationships={"tags": relationship_entry()})

        assert schema.validate_main({"name": "x", "tags": ["a"]}) == {"name": "x"}


class TestValidateModel:

    def test_registered_entity_resolves(self, validator, fake_product_store):
        assert validator.validate_model("product") is fake_product_store

    def test_unknown_entity_is_invalid_entity(self, validator):
        with pytest.raises(InvalidEntityError) as exc_info:
            validator.validate_model("warehouse")

        assert exc_info.value.code is ErrorCode.INVALID_ENTITY
        assert "warehouse" in exc_info.value.message

    def test_orm_model_needs_a_scope(self, product_config):
        validator = PayloadValidator(product_config, RepositoryRegistry({"product": Product}))

        with pytest.raises(InvalidEntityError):
            validator.validate_model("product")


def test_merge_parents_ignores_non_mapping_payload():
    assert merge_parents([1, 2], {"store_id": 4}) == [1, 2]
    assert merge_parents({"a": 1}, None) == {"a": 1}
