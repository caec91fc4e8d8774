"""
Storage for the Zotero API key.

The sync engine only needs to know whether a key is present; where the key
lives is decided by the SecretProvider it is given.
"""

import logging
from typing import Optional, Protocol

from threadmed.db.library_store import LibraryStore

logger = logging.getLogger(__name__)

API_KEY_META_KEY = "zotero_api_key"
API_KEY_ENV_VAR = "ZOTERO_API_KEY"


class SecretProvider(Protocol):
    """Where the Zotero API key is kept."""

    def retrieve(self) -> Optional[str]:
        ...

    def store(self, secret: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MetaSecretProvider:
    """
    Keeps the API key in the library database's sync_meta table.

    The key is stored as-is, so the database file should be treated with
    the same care as the key itself.
    """

    def __init__(self, library_store: LibraryStore):
        self.library_store = library_store

    def retrieve(self) -> Optional[str]:
        return self.library_store.get_meta(API_KEY_META_KEY)

    def store(self, secret: str) -> None:
        self.library_store.set_meta(API_KEY_META_KEY, secret)
        logger.info("Stored Zotero API key")

    def clear(self) -> None:
        self.library_store.delete_meta(API_KEY_META_KEY)
        logger.info("Cleared Zotero API key")


class SettingsSecretProvider:
    """Reads the API key from the ZOTERO_API_KEY environment variable (read-only)."""

    def __init__(self, env_var_name: str = API_KEY_ENV_VAR):
        self.env_var_name = env_var_name

    def retrieve(self) -> Optional[str]:
        from threadmed.config.settings import get_settings
        return get_settings().get_api_key(self.env_var_name)

    def store(self, secret: str) -> None:
        raise NotImplementedError(f"Set {self.env_var_name} in the environment or .env instead")

    def clear(self) -> None:
        raise NotImplementedError(f"Unset {self.env_var_name} in the environment or .env instead")
