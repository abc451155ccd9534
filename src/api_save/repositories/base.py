"""
Storage handle capability set consumed by the save pipeline.

Any object implementing these coroutines can back a primary entity or an
association collection; BaseRepository is the SQLAlchemy implementation.
"""
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable


@runtime_checkable
class StorageHandle(Protocol):

    async def get(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        """All rows matching an equality filter; empty list if none."""
        ...

    async def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        ...

    async def insert(self, record: Mapping[str, Any]) -> Any:
        """Create one row and return its identifier (falsy on failure)."""
        ...

    async def update(self, patch: Mapping[str, Any], filters: Mapping[str, Any]) -> Any:
        """Update matching rows; a falsy result means nothing matched."""
        ...

    async def multi_insert(self, rows: Sequence[Mapping[str, Any]]) -> Any:
        ...

    async def multi_remove(self, keys: Sequence[Mapping[str, Any]]) -> Any:
        """Delete the rows matching any of the given identity-key filters."""
        ...
