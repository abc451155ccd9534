from .hooks import SaveContext, SaveHooks
from .main_writer import MainRecordWriter
from .relationship_reconciler import RelationshipDiff, RelationshipReconciler, diff_relationship, format_entries
from .save_orchestrator import SaveOrchestrator

__all__ = [
    "SaveContext",
    "SaveHooks",
    "MainRecordWriter",
    "RelationshipDiff",
    "RelationshipReconciler",
    "diff_relationship",
    "format_entries",
    "SaveOrchestrator",
]
