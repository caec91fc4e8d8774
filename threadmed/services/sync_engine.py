"""
Zotero -> local library synchronization pipeline.

One sync cycle:
1. Fetch items changed since the stored library version (paginated)
2. Upsert each paper into the local store and download its PDF
3. Extract text from attachments that have none yet
4. Advance the stored library version

Records are processed one at a time; a failure on one record is reported
in the result and the cycle moves on to the next.
"""

import asyncio
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from threadmed.db.library_store import LibraryStore, LIBRARY_VERSION_KEY, USER_ID_KEY
from threadmed.models.paper import PaperInput
from threadmed.models.sync import (
    ConnectionInfo,
    SyncProgress,
    SyncResult,
    SyncState,
    ZoteroStatus,
)
from threadmed.services.credentials import SecretProvider
from threadmed.services.pdf_extractor import PDFExtractor
from threadmed.services.pdf_namer import generate_pdf_filename
from threadmed.zotero.metadata import (
    extract_authors,
    find_pdf_attachment,
    is_paper,
    parse_year,
)
from threadmed.zotero.web_api import ZoteroWebAPI

logger = logging.getLogger(__name__)

SYNC_IN_PROGRESS = "Sync already in progress"
NOT_CONNECTED = "Not connected to Zotero"

ClientFactory = Callable[[str, str], ZoteroWebAPI]
ProgressListener = Callable[[SyncProgress], None]

_NUMERIC_USER_ID = re.compile(r"[0-9]+")


class SyncEngine:
    """
    Runs sync cycles between a Zotero user library and a LibraryStore.

    At most one cycle runs per engine; a sync requested while another is in
    flight returns immediately with an error result and writes nothing.
    """

    def __init__(
        self,
        store: LibraryStore,
        secrets: SecretProvider,
        pdf_dir: Path,
        client_factory: Optional[ClientFactory] = None,
        pdf_extractor: Optional[PDFExtractor] = None,
        user_id: Optional[str] = None,
    ):
        """
        Initialize sync engine.

        Args:
            store: Local library store (the only thing the engine writes to)
            secrets: Where the Zotero API key is kept
            pdf_dir: Directory that receives downloaded attachments
            client_factory: Builds a Web API client from (api_key, user_id)
            pdf_extractor: Text extractor for downloaded attachments
            user_id: Fixed Zotero user ID. If None, the connected account's
                ID is read from the store.
        """
        self.store = store
        self.secrets = secrets
        self.user_id = user_id
        self.pdf_dir = Path(pdf_dir)
        self.pdf_dir.mkdir(parents=True, exist_ok=True)
        self.client_factory = client_factory or ZoteroWebAPI
        self.pdf_extractor = pdf_extractor or PDFExtractor()

        self._state = SyncState.IDLE
        self._state_lock = threading.Lock()
        self._listeners: list[ProgressListener] = []

        logger.info(f"Initialized SyncEngine (PDF directory: {self.pdf_dir})")

    # State

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state is SyncState.RUNNING

    def _begin(self) -> bool:
        """Move IDLE -> RUNNING. Returns False if a cycle is already running."""
        with self._state_lock:
            if self._state is SyncState.RUNNING:
                return False
            self._state = SyncState.RUNNING
            return True

    def _end(self):
        with self._state_lock:
            self._state = SyncState.IDLE

    # Progress

    def add_progress_listener(self, listener: ProgressListener):
        """Register a callback receiving SyncProgress events."""
        self._listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, progress: SyncProgress):
        for listener in list(self._listeners):
            try:
                listener(progress)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    # Connection

    def _get_user_id(self) -> Optional[str]:
        return self.user_id or self.store.get_meta(USER_ID_KEY)

    def get_status(self) -> ZoteroStatus:
        """Connection status for display. The API key itself is never included."""
        user_id = self._get_user_id()
        stored_version = self.store.get_meta(LIBRARY_VERSION_KEY)
        cursor = self.store.get_cursor()
        return ZoteroStatus(
            connected=bool(self.secrets.retrieve() and user_id),
            user_id=user_id,
            last_sync=cursor.last_sync,
            library_version=cursor.library_version if stored_version is not None else None,
        )

    async def connect(self, api_key: str, user_id: str) -> ConnectionInfo:
        """
        Validate and store Zotero credentials.

        Args:
            api_key: Zotero API key
            user_id: Numeric Zotero user ID

        Returns:
            ConnectionInfo; credentials are stored only when valid
        """
        if not api_key or not api_key.strip():
            return ConnectionInfo(valid=False, error="API key is required")
        if not user_id or not user_id.strip():
            return ConnectionInfo(valid=False, error="User ID is required")

        api_key = api_key.strip()
        user_id = user_id.strip()
        if not _NUMERIC_USER_ID.fullmatch(user_id):
            return ConnectionInfo(valid=False, error="User ID must be numeric")

        async with self.client_factory(api_key, user_id) as client:
            info = await client.validate_credentials()

        if info.valid:
            self.secrets.store(api_key)
            self.store.set_meta(USER_ID_KEY, user_id)
            logger.info(f"Connected to Zotero user {user_id} ({info.total_items} items)")
        else:
            logger.warning(f"Zotero credentials rejected: {info.error}")
        return info

    def disconnect(self):
        """Forget the stored credentials and the sync cursor."""
        self.secrets.clear()
        self.store.clear_sync_state()
        logger.info("Disconnected from Zotero")

    # Sync

    async def sync_library(self) -> SyncResult:
        """
        Run one sync cycle.

        Returns:
            SyncResult; errors are reported in it, never raised
        """
        if not self._begin():
            logger.info("Sync requested while another is running")
            return SyncResult(errors=[SYNC_IN_PROGRESS])

        try:
            api_key = self.secrets.retrieve()
            user_id = self._get_user_id()
            if not api_key or not user_id:
                return SyncResult(errors=[NOT_CONNECTED])

            async with self.client_factory(api_key, user_id) as client:
                return await self._run_cycle(client)
        except Exception as e:
            logger.error(f"Sync failed: {e}", exc_info=True)
            self._emit(SyncProgress(phase="error", error=str(e)))
            return SyncResult(errors=[str(e) or e.__class__.__name__])
        finally:
            self._end()

    async def _run_cycle(self, client: ZoteroWebAPI) -> SyncResult:
        since_version = self.store.get_cursor().library_version
        result = SyncResult(library_version=since_version)

        try:
            self._emit(SyncProgress(phase="metadata"))
            logger.info(f"Fetching items since version {since_version}")
            items = await client.fetch_items(since_version)
            # Later children/file responses may report a newer version whose
            # changes were not fetched in this cycle
            fetched_version = client.last_library_version

            papers = [item for item in items if is_paper(item)]
            logger.info(f"Got {len(items)} items from Zotero, {len(papers)} papers")

            total = len(papers)
            for index, item in enumerate(papers, start=1):
                title = item.get("data", {}).get("title") or "Untitled"
                self._emit(SyncProgress(
                    phase="downloading",
                    current=index,
                    total=total,
                    paper_title=title,
                ))
                try:
                    await self._sync_item(client, item, title, result)
                except Exception as e:
                    message = f"Failed to import '{title}': {str(e) or e.__class__.__name__}"
                    logger.error(message)
                    result.errors.append(message)

            await self._extract_missing_text()

            new_version = max(since_version, fetched_version)
            self.store.set_cursor(new_version, datetime.now(timezone.utc).isoformat())
            result.library_version = new_version

            self._emit(SyncProgress(phase="complete", current=total, total=total))
            logger.info(
                f"Sync complete: {result.imported} new, {result.updated} updated, "
                f"{result.pdfs_downloaded} PDFs, {len(result.errors)} errors"
            )

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Sync aborted: {message}", exc_info=True)
            result.errors.append(message)
            self._emit(SyncProgress(phase="error", error=message))

        return result

    async def _sync_item(
        self,
        client: ZoteroWebAPI,
        item: dict[str, Any],
        title: str,
        result: SyncResult,
    ):
        """Upsert one paper and fetch its PDF."""
        data = item.get("data", {})
        authors = extract_authors(data.get("creators"))
        year = parse_year(data.get("date"))

        paper_id, created = self.store.upsert_paper(PaperInput(
            title=title,
            year=year,
            doi=data.get("DOI") or None,
            journal=data.get("publicationTitle") or None,
            abstract=data.get("abstractNote") or None,
            zotero_key=item["key"],
            zotero_version=item.get("version", 0),
            authors=authors,
        ))
        if created:
            result.imported += 1
        else:
            result.updated += 1

        if await self._download_pdf(client, item["key"], paper_id, authors, year):
            result.pdfs_downloaded += 1

    async def _download_pdf(
        self,
        client: ZoteroWebAPI,
        item_key: str,
        paper_id: str,
        authors: list[str],
        year: Optional[int],
    ) -> bool:
        """
        Download the item's PDF attachment unless the paper already has one on disk.

        Returns:
            True if a file was downloaded
        """
        existing = self.store.get_pdf_filename(paper_id)
        if existing and (self.pdf_dir / existing).exists():
            return False

        children = await client.fetch_child_items(item_key)
        attachment = find_pdf_attachment(children)
        if attachment is None:
            logger.debug(f"Item {item_key} has no PDF attachment")
            return False

        content = await client.download_file(attachment["key"])
        filename = generate_pdf_filename(authors, year, self.pdf_dir)
        await asyncio.to_thread((self.pdf_dir / filename).write_bytes, content)
        self.store.set_pdf_filename(paper_id, filename)

        logger.info(f"Downloaded PDF: {filename}")
        return True

    async def _extract_missing_text(self):
        """
        Extract text for papers with an attachment but no text.

        pypdf runs in a worker thread so API requests are served meanwhile.
        Failures are only logged.
        """
        pending = self.store.papers_needing_extraction()
        total = len(pending)

        for index, paper in enumerate(pending, start=1):
            self._emit(SyncProgress(
                phase="extracting",
                current=index,
                total=total,
                paper_title=paper["title"],
            ))

            pdf_path = self.pdf_dir / paper["pdf_filename"]
            if not pdf_path.exists():
                logger.debug(f"Skipping extraction, file missing: {pdf_path}")
                continue

            try:
                text = await asyncio.to_thread(self.pdf_extractor.extract_text, pdf_path)
                if text:
                    self.store.update_full_text(paper["id"], text)
                    logger.info(f"Extracted text for: {paper['title']} ({len(text)} chars)")
            except Exception as e:
                logger.warning(f"Text extraction failed for {paper['title']}: {e}")
