"""
Process-wide service instances shared by the API routers.
"""

import logging
from typing import Optional

from threadmed.config.settings import get_settings
from threadmed.db.library_store import LibraryStore
from threadmed.services.credentials import MetaSecretProvider
from threadmed.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

_store: Optional[LibraryStore] = None
_engine: Optional[SyncEngine] = None


def get_library_store() -> LibraryStore:
    """Get the library store, opening it on first use."""
    global _store
    if _store is None:
        settings = get_settings()
        _store = LibraryStore(settings.db_path)
    return _store


def get_sync_engine() -> SyncEngine:
    """Get the sync engine, creating it on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        store = get_library_store()
        _engine = SyncEngine(
            store=store,
            secrets=MetaSecretProvider(store),
            pdf_dir=settings.pdf_dir,
        )
    return _engine


def reset_dependencies():
    """Close and forget the shared instances (shutdown and tests)."""
    global _store, _engine
    if _store is not None:
        _store.close()
    _store = None
    _engine = None
