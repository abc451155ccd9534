"""
Synchronise association rows with the desired relationship lists.

For each relationship present in the request:

  - entries are formatted into association rows
    `{main_field: main_id, secondary_field: entry.id, **extra_fields}`;
  - additive path (new primary record, or should_clean off): one bulk insert
    of every desired row, existing rows are never read nor removed;
  - full path (existing record with should_clean on): read the current rows,
    diff them against the desired rows on the (main, secondary) identity with
    deep equality, then remove stale rows (by identity only) and insert new or
    changed ones concurrently.

Relationships are reconciled concurrently; a failure in one does not cancel
the others, and the first failure is raised once all have finished.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from api_save.exceptions.base import InvalidEntityError, RelationshipConfigurationError
from api_save.repositories.base import StorageHandle
from api_save.repositories.registry import SessionScope, instantiate
from api_save.schemas.save_data import RelationshipParameters

logger = logging.getLogger(__name__)

Row = dict[str, Any]


@dataclass
class RelationshipDiff:
    """Rows to insert and identity keys to remove for one relationship."""
    to_insert: list[Row] = field(default_factory=list)
    to_remove: list[Row] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_insert and not self.to_remove


def format_entries(entries: Sequence[Any], main_id: Any, params: RelationshipParameters) -> list[Row]:
    """
    Turn relationship entries (bare ids or `{"id": ..., **extra}` objects) into
    association rows. Entries colliding on the identity keep the position of
    the first occurrence and the content of the last.
    """
    rows: dict[Any, Row] = {}
    for entry in entries:
        fields = dict(entry) if isinstance(entry, Mapping) else {"id": entry}
        secondary_id = fields.pop("id", None)
        rows[secondary_id] = {
            params.main_identifier_field: main_id,
            params.secondary_identifier_field: secondary_id,
            **fields,
        }
    return list(rows.values())


def identity_key(row: Mapping[str, Any], params: RelationshipParameters) -> Row:
    return {
        params.main_identifier_field: row[params.main_identifier_field],
        params.secondary_identifier_field: row[params.secondary_identifier_field],
    }


def _index(rows: Sequence[Row], params: RelationshipParameters) -> dict[tuple, Row]:
    return {
        (row[params.main_identifier_field], row[params.secondary_identifier_field]): row
        for row in rows
    }


def diff_relationship(current: Sequence[Row], desired: Sequence[Row],
                      params: RelationshipParameters) -> RelationshipDiff:
    """
    Compute `desired \\ current` (to insert) and `current \\ desired` (to
    remove, reduced to identity keys). Rows match when they share the
    identity and are deep-equal, extra fields included.
    """
    if not current:
        return RelationshipDiff(to_insert=list(desired))

    if not desired:
        return RelationshipDiff(to_remove=[identity_key(row, params) for row in current])

    current_index = _index(current, params)
    desired_index = _index(desired, params)

    return RelationshipDiff(
        to_insert=[row for key, row in desired_index.items() if current_index.get(key) != row],
        to_remove=[
            identity_key(row, params)
            for key, row in current_index.items()
            if desired_index.get(key) != row
        ],
    )


class RelationshipReconciler:

    def __init__(self, parameters: Mapping[str, RelationshipParameters], scope: SessionScope | None = None):
        self.parameters = parameters
        self.scope = scope

    def _parameters_for(self, name: str) -> RelationshipParameters:
        params = self.parameters.get(name)
        if params is None:
            logger.error("relationships.missing_parameters", extra={"relationship": name})
            raise RelationshipConfigurationError(name)
        return params

    def _store_for(self, name: str, params: RelationshipParameters) -> StorageHandle:
        if params.store is not None:
            return params.store
        try:
            return instantiate(params.store_class, self.scope)
        except LookupError as exc:
            raise InvalidEntityError(f"Store for relationship {name} could not be resolved: {exc}") from exc

    async def reconcile(self, desired_by_relationship: Mapping[str, Sequence[Any]], main_id: Any,
                        is_new: bool) -> dict[str, RelationshipDiff]:
        """
        Reconcile every relationship concurrently and wait for all of them.

        Returns:
            relationship name -> applied diff
        Raises:
            The first failure, after every relationship has finished.
        """
        names = list(desired_by_relationship)
        results = await asyncio.gather(
            *(
                self.reconcile_relationship(name, desired_by_relationship[name], main_id, is_new)
                for name in names
            ),
            return_exceptions=True,
        )

        failures = [(name, result) for name, result in zip(names, results) if isinstance(result, BaseException)]
        for name, failure in failures:
            logger.warning(
                "relationships.failed",
                extra={"relationship": name, "error_type": type(failure).__name__},
            )
        if failures:
            raise failures[0][1]

        return dict(zip(names, results))

    async def reconcile_relationship(self, name: str, entries: Sequence[Any], main_id: Any,
                                     is_new: bool) -> RelationshipDiff:
        params = self._parameters_for(name)
        store = self._store_for(name, params)
        desired = format_entries(entries, main_id, params)

        if is_new or not params.should_clean:
            diff = RelationshipDiff(to_insert=desired)
            if desired:
                await store.multi_insert(desired)
            logger.debug(
                "relationships.additive",
                extra={"relationship": name, "inserted": len(desired)},
            )
            return diff

        current = await store.get({params.main_identifier_field: main_id})
        diff = diff_relationship(current, desired, params)

        logger.debug(
            "relationships.diff",
            extra={
                "relationship": name,
                "current": len(current),
                "desired": len(desired),
                "to_insert": len(diff.to_insert),
                "to_remove": len(diff.to_remove),
            },
        )

        writes = []
        if diff.to_remove:
            writes.append(store.multi_remove(diff.to_remove))
        if diff.to_insert:
            writes.append(store.multi_insert(diff.to_insert))
        if writes:
            # both must succeed; neither is cancelled when the other fails
            results = await asyncio.gather(*writes, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result

        return diff
