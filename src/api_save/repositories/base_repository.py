"""
SQLAlchemy-backed storage handle.

BaseRepository implements the StorageHandle capability set for one ORM model
(a primary entity or an association table) on top of an AsyncSession:

  - rows are exchanged as plain dicts of mapped columns, never ORM instances;
  - every write commits on its own, so a committed main record does not depend
    on how relationship synchronisation ends;
  - failures roll back the session and propagate unchanged (classification
    happens at the save boundary, see exceptions.mapper);
  - statements issued on the same session are serialised with a per-session
    asyncio.Lock, because the relationship fan-out runs several coroutines
    against one request session and an AsyncSession does not allow
    overlapping operations.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Generic, Mapping, Sequence, Type, TypeVar

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api_save.database.base import Base
from api_save.exceptions.base import InvalidFieldError, RepositoryError
from api_save.validators.model_validators import (
    entity_to_dict,
    find_unknown_model_kwargs,
    get_primary_key_names,
)

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)

_SESSION_LOCK_KEY = "api_save.statement_lock"


def session_lock(db: AsyncSession) -> asyncio.Lock:
    """Return the lock shared by every repository bound to `db`."""
    info = db.sync_session.info
    lock = info.get(_SESSION_LOCK_KEY)
    if lock is None:
        lock = info[_SESSION_LOCK_KEY] = asyncio.Lock()
    return lock


class BaseRepository(Generic[ModelType]):
    """
    Generic storage handle for one model.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Args:
            model: The SQLAlchemy model class (not an instance)
            db: The async database session, usually one per request
        """
        self.model = model
        self.db = db

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @property
    def id_field(self) -> str:
        """Name of the single-column primary key, used to address one record."""
        pk_names = get_primary_key_names(self.model)
        if len(pk_names) != 1:
            raise RepositoryError(f"{self.model_name} has no single-column primary key")
        return pk_names[0]

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _check_fields(self, keys, operation: str) -> None:
        unknown = find_unknown_model_kwargs(self.model, keys)
        if unknown:
            logger.info(
                "repo.invalid_fields",
                extra={"model": self.model_name, "operation": operation, "invalid_fields": sorted(unknown)},
            )
            raise InvalidFieldError(f"Unknown field(s) for {self.model_name}: {', '.join(unknown)}", fields=unknown)

    def _conditions(self, filters: Mapping[str, Any], operation: str) -> list:
        self._check_fields(filters.keys(), operation)
        return [getattr(self.model, key) == value for key, value in filters.items()]

    @asynccontextmanager
    async def _statement(self, operation: str, *, write: bool = False):
        """
        Run a block under the session lock. Writes are committed on success;
        any failure rolls back and propagates.
        """
        start = time.perf_counter()
        async with session_lock(self.db):
            try:
                yield
                if write:
                    await self.db.commit()
            except Exception:
                try:
                    await self.db.rollback()
                except Exception:
                    logger.exception("repo.rollback_failed", extra={"model": self.model_name, "operation": operation})
                logger.info(
                    "repo.%s.failed", operation,
                    extra={"model": self.model_name, "operation": operation},
                )
                raise

        logger.debug(
            "repo.%s.success", operation,
            extra={
                "model": self.model_name,
                "operation": operation,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get(self, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Return every row matching the equality filter, as plain dicts."""
        # writes bypass the identity map, so loaded instances must be refreshed
        stmt = (
            select(self.model)
            .where(*self._conditions(filters, "get"))
            .execution_options(populate_existing=True)
        )
        async with self._statement("get"):
            result = await self.db.execute(stmt)
            rows = [entity_to_dict(entity) for entity in result.scalars().all()]
        return rows

    async def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        rows = await self.get({self.id_field: record_id})
        return rows[0] if rows else None

    async def count(self, filters: Mapping[str, Any]) -> int:
        stmt = select(func.count()).select_from(self.model).where(*self._conditions(filters, "count"))
        async with self._statement("count"):
            result = await self.db.execute(stmt)
            total = result.scalar_one()
        return total

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    async def insert(self, record: Mapping[str, Any]) -> Any:
        """Insert one row; returns its primary key value (a tuple for composite keys)."""
        self._check_fields(record.keys(), "insert")

        logger.debug(
            "repo.insert.start",
            extra={"model": self.model_name, "provided_keys": sorted(record.keys())},
        )

        async with self._statement("insert", write=True):
            entity = self.model(**record)
            self.db.add(entity)
            await self.db.flush()
            # read the key before commit expires the instance
            pk_values = tuple(getattr(entity, name) for name in get_primary_key_names(self.model))

        return pk_values[0] if len(pk_values) == 1 else pk_values

    async def update(self, patch: Mapping[str, Any], filters: Mapping[str, Any]) -> int:
        """
        Update rows matching `filters` with `patch`.

        Returns:
            The number of matched rows; 0 means nothing matched.
        """
        if not filters:
            raise RepositoryError(f"Refusing to update every {self.model_name} row without a filter")
        if not patch:
            return await self.count(filters)

        self._check_fields(patch.keys(), "update")
        stmt = (
            update(self.model)
            .where(*self._conditions(filters, "update"))
            .values(**patch)
            .execution_options(synchronize_session=False)
        )

        async with self._statement("update", write=True):
            result = await self.db.execute(stmt)
            matched = result.rowcount

        if not matched:
            logger.info("repo.update.no_match", extra={"model": self.model_name, "filters": sorted(filters)})
        return matched

    async def multi_insert(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert all rows with a single executemany statement."""
        rows = [dict(row) for row in rows]
        if not rows:
            return 0

        for row in rows:
            self._check_fields(row.keys(), "multi_insert")

        async with self._statement("multi_insert", write=True):
            await self.db.execute(insert(self.model), rows)

        logger.debug("repo.multi_insert.rows", extra={"model": self.model_name, "count": len(rows)})
        return len(rows)

    async def multi_remove(self, keys: Sequence[Mapping[str, Any]]) -> int:
        """Delete rows matching any of the key filters (OR of AND-ed equalities)."""
        if not keys:
            return 0

        clauses = []
        for key in keys:
            if not key:
                raise RepositoryError(f"Empty removal key for {self.model_name}")
            clauses.append(and_(*self._conditions(key, "multi_remove")))

        stmt = delete(self.model).where(or_(*clauses)).execution_options(synchronize_session=False)

        async with self._statement("multi_remove", write=True):
            result = await self.db.execute(stmt)
            removed = result.rowcount

        logger.debug("repo.multi_remove.rows", extra={"model": self.model_name, "count": removed})
        return removed
