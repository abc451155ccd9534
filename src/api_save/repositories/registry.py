"""
Resolution of entity names and class references to storage handles.

- RepositoryRegistry maps an entity name ("product") to a target: an ORM
  model (wrapped in BaseRepository), a repository class, or a zero-argument
  factory returning a handle (unscoped use only).
- SessionScope is the per-request scoping factory: it binds every handle it
  creates to the request's AsyncSession and hands out one instance per class.
"""
import logging
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from api_save.database.base import Base
from .base import StorageHandle
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionScope:
    """Per-request factory of session-bound storage handles."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._instances: dict[Any, StorageHandle] = {}

    def get_instance(self, cls: Callable[..., Any]) -> StorageHandle:
        """
        Return the scoped handle for `cls`:
          - ORM model class -> BaseRepository(cls, session)
          - anything else -> cls(session)
        Instances are cached for the lifetime of the scope.
        """
        instance = self._instances.get(cls)
        if instance is None:
            if isinstance(cls, type) and issubclass(cls, Base):
                instance = BaseRepository(cls, self.session)
            else:
                instance = cls(self.session)
            self._instances[cls] = instance
        return instance


def instantiate(cls: Callable[..., Any], scope: SessionScope | None = None) -> StorageHandle:
    """
    Build a handle from a class reference: through the scope when a request
    scope exists, by direct instantiation otherwise.
    """
    if scope is not None:
        return scope.get_instance(cls)

    if isinstance(cls, type) and issubclass(cls, Base):
        raise LookupError(f"{cls.__name__} is an ORM model and needs a session scope to be resolved")
    return cls()


class RepositoryRegistry:
    """Entity name -> handle class (or factory) registry."""

    def __init__(self, entries: dict[str, Callable[..., Any]] | None = None):
        self._entries: dict[str, Callable[..., Any]] = {}
        for entity, target in (entries or {}).items():
            self.register(entity, target)

    def register(self, entity: str, target: Callable[..., Any]) -> None:
        if not entity:
            raise ValueError("Entity name must not be empty")
        self._entries[entity] = target

    def __contains__(self, entity: str) -> bool:
        return entity in self._entries

    def resolve(self, entity: str, scope: SessionScope | None = None) -> StorageHandle:
        """
        Return the storage handle for `entity`.

        Raises:
            LookupError: unknown entity name, or a model that cannot be built
                without a scope. KeyError (a LookupError) for unknown names.
        """
        try:
            target = self._entries[entity]
        except KeyError:
            raise KeyError(f"Entity {entity!r} is not registered") from None

        logger.debug("registry.resolve", extra={"entity": entity, "target": getattr(target, "__name__", repr(target)), "scoped": scope is not None})
        return instantiate(target, scope)
