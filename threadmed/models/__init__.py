"""Data models for the sync backend."""

from threadmed.models.paper import Paper, PaperInput, SearchHit
from threadmed.models.sync import (
    SyncState,
    SyncPhase,
    SyncCursor,
    SyncResult,
    SyncProgress,
    ConnectionInfo,
    ZoteroStatus,
)

__all__ = [
    "Paper",
    "PaperInput",
    "SearchHit",
    "SyncState",
    "SyncPhase",
    "SyncCursor",
    "SyncResult",
    "SyncProgress",
    "ConnectionInfo",
    "ZoteroStatus",
]
