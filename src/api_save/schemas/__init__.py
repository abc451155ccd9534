from .save_schema import IdValue, SaveSchema, relationship_entry
from .save_data import DataToSave, RelationshipParameters, SaveConfig, SaveRequest, SaveResponse

__all__ = [
    "IdValue",
    "SaveSchema",
    "relationship_entry",
    "DataToSave",
    "RelationshipParameters",
    "SaveConfig",
    "SaveRequest",
    "SaveResponse",
]
