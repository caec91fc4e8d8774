"""
Data models for synchronization state, progress and results.
"""

from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncState(str, Enum):
    """Lifecycle of a sync engine instance."""

    IDLE = "idle"
    RUNNING = "running"


SyncPhase = Literal["metadata", "downloading", "extracting", "complete", "error"]


class SyncCursor(BaseModel):
    """Persisted incremental-sync position."""

    library_version: int = Field(
        default=0,
        description="Highest Zotero library version seen by a completed sync"
    )
    last_sync: Optional[str] = Field(
        default=None,
        description="ISO timestamp of the last completed sync"
    )


class SyncResult(BaseModel):
    """Summary of one sync cycle."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imported: int = Field(default=0, description="Papers inserted")
    updated: int = Field(default=0, description="Existing papers overwritten")
    pdfs_downloaded: int = Field(default=0, description="Attachments written to disk")
    errors: list[str] = Field(default_factory=list, description="Per-record or fatal errors, in order")
    library_version: int = Field(default=0, description="Library version the cursor now points at")


class SyncProgress(BaseModel):
    """Progress event emitted while a sync runs."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: SyncPhase
    current: int = 0
    total: int = 0
    paper_title: Optional[str] = None
    error: Optional[str] = None


class ConnectionInfo(BaseModel):
    """Outcome of validating Zotero credentials."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    valid: bool
    total_items: int = 0
    error: Optional[str] = None


class ZoteroStatus(BaseModel):
    """Connection status exposed to clients. Never carries the API key."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    connected: bool
    user_id: Optional[str] = None
    last_sync: Optional[str] = None
    library_version: Optional[int] = None
