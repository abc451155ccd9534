"""Save a primary record together with its many-to-many relationships."""

from .exceptions import ApiSaveError, ErrorCode
from .repositories import BaseRepository, RepositoryRegistry, SessionScope, StorageHandle
from .schemas import (
    DataToSave,
    RelationshipParameters,
    SaveConfig,
    SaveRequest,
    SaveResponse,
    SaveSchema,
    relationship_entry,
)
from .services import SaveContext, SaveHooks, SaveOrchestrator

__all__ = [
    "ApiSaveError",
    "ErrorCode",
    "BaseRepository",
    "RepositoryRegistry",
    "SessionScope",
    "StorageHandle",
    "DataToSave",
    "RelationshipParameters",
    "SaveConfig",
    "SaveRequest",
    "SaveResponse",
    "SaveSchema",
    "relationship_entry",
    "SaveContext",
    "SaveHooks",
    "SaveOrchestrator",
]
