"""
In-memory stand-ins for the sync engine's collaborators.
"""

import asyncio
from io import BytesIO
from typing import Any, Optional

from pypdf import PdfWriter

from threadmed.models.sync import ConnectionInfo
from threadmed.zotero.errors import ZoteroAPIError


def blank_pdf_bytes(pages: int = 1) -> bytes:
    """A valid PDF of blank pages (no extractable text)."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class InMemorySecretProvider:
    """SecretProvider holding the key in memory."""

    def __init__(self, secret: Optional[str] = None):
        self.secret = secret

    def retrieve(self) -> Optional[str]:
        return self.secret

    def store(self, secret: str) -> None:
        self.secret = secret

    def clear(self) -> None:
        self.secret = None


def make_item(
    key: str,
    version: int,
    title: Optional[str] = None,
    item_type: str = "journalArticle",
    creators: Optional[list[dict[str, Any]]] = None,
    date: str = "2024-03-15",
) -> dict[str, Any]:
    """Create a Zotero item dict as returned by the Web API."""
    return {
        "key": key,
        "version": version,
        "library": {"type": "user", "id": 12345, "name": "My Library"},
        "data": {
            "key": key,
            "version": version,
            "itemType": item_type,
            "title": title if title is not None else f"Paper {key}",
            "date": date,
            "DOI": f"10.1000/{key.lower()}",
            "publicationTitle": "Journal of Tests",
            "abstractNote": f"Abstract for {key}",
            "creators": creators if creators is not None else [
                {"creatorType": "author", "firstName": "John", "lastName": "Smith"}
            ],
        },
    }


def make_pdf_attachment(key: str, parent_key: str, link_mode: str = "imported_file") -> dict[str, Any]:
    """Create a PDF attachment child item."""
    return {
        "key": key,
        "version": 1,
        "data": {
            "key": key,
            "itemType": "attachment",
            "parentItem": parent_key,
            "contentType": "application/pdf",
            "linkMode": link_mode,
            "filename": f"{key}.pdf",
        },
    }


class FakeZoteroClient:
    """
    Stand-in for ZoteroWebAPI backed by in-memory items.

    fetch_items honours since_version the way the real API's `since`
    parameter does, so repeated syncs see only newer items.
    """

    def __init__(
        self,
        items: Optional[list[dict[str, Any]]] = None,
        children: Optional[dict[str, list[dict[str, Any]]]] = None,
        files: Optional[dict[str, Any]] = None,
        library_version: Optional[int] = None,
        fetch_error: Optional[Exception] = None,
        connection: Optional[ConnectionInfo] = None,
    ):
        self.items = items or []
        self.children = children or {}
        self.files = files or {}
        self._library_version = library_version
        self.fetch_error = fetch_error
        self.connection = connection or ConnectionInfo(valid=True, total_items=len(self.items))
        self.last_library_version = 0

        # Version reported by children requests (library changed mid-cycle)
        self.children_library_version: Optional[int] = None

        self.fetch_calls: list[int] = []
        self.downloads: list[str] = []
        self.credentials: list[tuple[str, str]] = []

        # Set to make fetch_items block until released
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fetch_started = asyncio.Event()

    @property
    def library_version(self) -> int:
        """Explicit version if set, else the highest item version."""
        if self._library_version is not None:
            return self._library_version
        return max((item["version"] for item in self.items), default=0)

    @library_version.setter
    def library_version(self, value: int):
        self._library_version = value

    def factory(self, api_key: str, user_id: str) -> "FakeZoteroClient":
        """Client factory for SyncEngine; records the credentials it was given."""
        self.credentials.append((api_key, user_id))
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def validate_credentials(self) -> ConnectionInfo:
        return self.connection

    async def fetch_items(self, since_version: int = 0) -> list[dict[str, Any]]:
        self.fetch_calls.append(since_version)
        self.fetch_started.set()
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        self.last_library_version = self.library_version
        return [item for item in self.items if item["version"] > since_version]

    async def fetch_child_items(self, parent_key: str) -> list[dict[str, Any]]:
        if self.children_library_version is not None:
            self.last_library_version = self.children_library_version
        return self.children.get(parent_key, [])

    async def download_file(self, item_key: str) -> bytes:
        self.downloads.append(item_key)
        if item_key not in self.files:
            raise ZoteroAPIError("Zotero API error 404: Not found", status=404, body="Not found")
        content = self.files[item_key]
        if isinstance(content, Exception):
            raise content
        return content
