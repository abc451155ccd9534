import logging
import time
from typing import Any

from api_save.repositories.base import StorageHandle
from api_save.schemas.save_data import DataToSave

logger = logging.getLogger(__name__)


class MainRecordWriter:
    """
    Insert or update the primary record.

    Storage exceptions propagate unchanged; a falsy return value means the
    store wrote nothing and is escalated by the orchestrator.

    Updates address the record through `id_field`: the explicit argument,
    else the handle's own `id_field` (BaseRepository exposes its primary
    key), else "id".
    """

    def __init__(self, handle: StorageHandle, id_field: str | None = None):
        self.handle = handle
        self.id_field = id_field or getattr(handle, "id_field", "id")

    async def write(self, data: DataToSave) -> Any:
        start = time.perf_counter()

        if data.is_new:
            saved_id = await self.handle.insert(data.main)
            operation = "insert"
        else:
            updated = await self.handle.update(data.main, {self.id_field: data.id})
            saved_id = data.id if updated else None
            operation = "update"

        logger.debug(
            "main_writer.%s", operation,
            extra={
                "record_id": saved_id,
                "written": bool(saved_id),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return saved_id
