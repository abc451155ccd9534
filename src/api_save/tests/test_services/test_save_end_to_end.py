"""
Full saves against SQLite: main record through BaseRepository, association
tables resolved through the request's SessionScope.
"""
import pytest

from api_save.exceptions.base import ApiSaveError, ErrorCode
from api_save.schemas.save_data import SaveConfig, SaveRequest
from api_save.services.save_orchestrator import SaveOrchestrator


def by_secondary(rows, field):
    return sorted(rows, key=lambda row: row[field])


@pytest.mark.asyncio
class TestSaveEndToEnd:

    async def test_create_with_relationships(self, sql_product_config, sql_registry, session_scope,
                                             product_repo, product_category_repo, product_image_repo):
        """
        Behavior:
                - Create a product with two categories and one image carrying extra fields.
                - The product row and every association row are persisted.

        Importance:
                - Exercises the whole pipeline on a real session: validation, entity
                  resolution through the registry, the main insert and the concurrent
                  relationship fan-out sharing one AsyncSession.
        """
        orchestrator = SaveOrchestrator(sql_product_config, sql_registry)

        response = await orchestrator.save(
            SaveRequest(data={
                "code": "DESK",
                "name": "Desk",
                "categories": [1, {"id": 2}],
                "images": [{"id": 5, "caption": "Front", "is_cover": True}],
            }),
            scope=session_scope,
        )

        product_id = response.body["id"]
        assert response.status_code == 200
        assert await product_repo.get_by_id(product_id) == {
            "id": product_id, "code": "DESK", "name": "Desk", "price": None,
        }
        categories = await product_category_repo.get({"product_id": product_id})
        assert by_secondary(categories, "category_id") == [
            {"product_id": product_id, "category_id": 1},
            {"product_id": product_id, "category_id": 2},
        ]
        assert await product_image_repo.get({"product_id": product_id}) == [
            {"product_id": product_id, "image_id": 5, "caption": "Front", "is_cover": True},
        ]

    async def test_update_reconciles_relationships(self, sql_product_config, sql_registry, session_scope,
                                                   product_repo, product_category_repo, product_image_repo):
        orchestrator = SaveOrchestrator(sql_product_config, sql_registry)
        created = await orchestrator.save(
            SaveRequest(data={
                "code": "DESK",
                "name": "Desk",
                "categories": [1, 2],
                "images": [{"id": 5, "caption": "Front"}, {"id": 6, "caption": "Side"}],
            }),
            scope=session_scope,
        )
        product_id = created.body["id"]

        response = await orchestrator.save(
            SaveRequest(record_id=product_id, data={
                "name": "Standing desk",
                "code": "DESK",
                "categories": [2, 3],
                "images": [{"id": 5, "caption": "Back"}, {"id": 6, "caption": "Side"}],
            }),
            scope=session_scope,
        )

        assert response.body == {"id": product_id}
        product = await product_repo.get_by_id(product_id)
        assert product["name"] == "Standing desk"

        categories = await product_category_repo.get({"product_id": product_id})
        assert [row["category_id"] for row in by_secondary(categories, "category_id")] == [2, 3]

        images = await product_image_repo.get({"product_id": product_id})
        assert by_secondary(images, "image_id") == [
            {"product_id": product_id, "image_id": 5, "caption": "Back", "is_cover": False},
            {"product_id": product_id, "image_id": 6, "caption": "Side", "is_cover": False},
        ]

    async def test_update_with_empty_list_clears_relationship(self, sql_product_config, sql_registry,
                                                              session_scope, product_category_repo):
        orchestrator = SaveOrchestrator(sql_product_config, sql_registry)
        created = await orchestrator.save(
            SaveRequest(data={"code": "DESK", "name": "Desk", "categories": [1, 2]}),
            scope=session_scope,
        )
        product_id = created.body["id"]

        await orchestrator.save(
            SaveRequest(record_id=product_id, data={"code": "DESK", "name": "Desk", "categories": []}),
            scope=session_scope,
        )

        assert await product_category_repo.get({"product_id": product_id}) == []

    async def test_duplicate_code_is_a_duplicated_key_error(self, sql_product_config, sql_registry,
                                                            session_scope, create_product, product_repo):
        await create_product(code="LAMP")
        orchestrator = SaveOrchestrator(sql_product_config, sql_registry)

        with pytest.raises(ApiSaveError) as exc_info:
            await orchestrator.save(SaveRequest(data={"code": "LAMP", "name": "Other lamp"}), scope=session_scope)

        error = exc_info.value
        assert error.code is ErrorCode.DUPLICATED_KEY_ERROR
        assert error.fields == ["code"]
        assert error.message == "A document for field or fields: 'code' already exists"
        assert error.to_payload() == {
            "message": "A document for field or fields: 'code' already exists",
            "code": 98,
            "name": "ApiSaveError",
            "fields": ["code"],
        }
        # the session is still usable after the rollback
        assert await product_repo.count({"code": "LAMP"}) == 1

    async def test_unknown_column_is_an_internal_error(self, sql_registry, session_scope):
        orchestrator = SaveOrchestrator(SaveConfig(entity="product"), sql_registry)

        with pytest.raises(ApiSaveError) as exc_info:
            await orchestrator.save(SaveRequest(data={"code": "X", "name": "X", "colour": "red"}), scope=session_scope)

        assert exc_info.value.code is ErrorCode.INTERNAL_ERROR
        assert "colour" in exc_info.value.message

    async def test_orm_entity_without_scope_is_an_invalid_entity(self, sql_product_config, sql_registry):
        orchestrator = SaveOrchestrator(sql_product_config, sql_registry)

        with pytest.raises(ApiSaveError) as exc_info:
            await orchestrator.save(SaveRequest(data={"code": "X", "name": "X"}))

        assert exc_info.value.code is ErrorCode.INVALID_ENTITY
