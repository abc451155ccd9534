"""
Per-endpoint customisation points of the save pipeline.

Subclass SaveHooks and override what the entity needs; every method may be a
plain function or a coroutine.

    class ProductHooks(SaveHooks):
        async def format(self, context, main):
            return {**main, "slug": slugify(main["name"])}

        async def should_save(self, context, main):
            current = await context.get_current()
            return current is None or current["name"] != main.get("name")
"""
import inspect
from typing import Any, Mapping

from api_save.exceptions.base import InternalSaveError
from api_save.repositories.base import StorageHandle
from api_save.repositories.registry import SessionScope
from api_save.schemas.save_data import DataToSave, SaveConfig, SaveRequest
from api_save.schemas.save_schema import SaveSchema


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class SaveContext:
    """State of one save request, shared with the hooks."""

    def __init__(self, request: SaveRequest, config: SaveConfig, scope: SessionScope | None = None):
        self.request = request
        self.config = config
        self.scope = scope
        self.data: DataToSave | None = None
        self.handle: StorageHandle | None = None
        self._current: Mapping[str, Any] | None = None
        self._current_loaded = False

    @property
    def entity(self) -> str:
        return self.request.entity or self.config.entity

    @property
    def is_update(self) -> bool:
        return self.data is not None and not self.data.is_new

    async def get_current(self) -> Mapping[str, Any] | None:
        """
        The persisted record being updated, read once per request.

        Raises:
            InternalSaveError: on a create request (there is no current record).
        """
        if not self.is_update:
            raise InternalSaveError("The current record is only available when updating an existing record")

        if not self._current_loaded:
            self._current = await self.handle.get_by_id(self.data.id)
            self._current_loaded = True
        return self._current


class SaveHooks:
    """No-op defaults."""

    def get_schema(self, context: SaveContext) -> SaveSchema | None:
        """Schema override for this request; None uses the configured schema."""
        return None

    def post_validate(self, context: SaveContext, data: DataToSave) -> dict[str, Any] | None:
        """Inspect validated data. Raise to reject it; return a mapping to replace `main`."""
        return None

    def format(self, context: SaveContext, main: dict[str, Any]) -> dict[str, Any]:
        return main

    def should_save(self, context: SaveContext, main: dict[str, Any]) -> bool:
        return True

    def post_save(self, context: SaveContext, record_id: Any, main: dict[str, Any]) -> None:
        return None
