from .base import StorageHandle
from .base_repository import BaseRepository
from .registry import RepositoryRegistry, SessionScope, instantiate

__all__ = ["StorageHandle", "BaseRepository", "RepositoryRegistry", "SessionScope", "instantiate"]
