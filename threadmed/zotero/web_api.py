"""
Client for the Zotero Web API v3 (api.zotero.org).

Handles pagination (at most 100 items per request), rate limiting
(429 responses and Backoff / Retry-After headers) and incremental sync
through the Last-Modified-Version header.
"""

import logging
import math
from typing import Optional, Any
import aiohttp
import asyncio

from threadmed.models.sync import ConnectionInfo
from threadmed.zotero.errors import ZoteroAPIError, ZoteroRateLimitError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 5.0


class ZoteroWebAPI:
    """
    Client for one user library on the Zotero Web API.

    Every response updates `last_library_version`, which a caller can store
    as the cursor for the next incremental fetch.
    """

    def __init__(
        self,
        api_key: str,
        user_id: str,
        base_url: Optional[str] = None,
        page_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        default_backoff: Optional[float] = None,
        request_timeout: Optional[float] = None,
    ):
        """
        Initialize Web API client.

        Args:
            api_key: Zotero API key
            user_id: Numeric Zotero user ID
            base_url: API base URL. If None, uses ZOTERO_API_URL from settings.
            page_size: Items per page when paginating (max 100)
            max_retries: Attempts per request while rate limited
            default_backoff: Seconds to wait when the backoff hint is unparseable
            request_timeout: Total timeout in seconds per request
        """
        if base_url is None:
            from threadmed.config.settings import get_settings
            settings = get_settings()
            base_url = settings.zotero_api_url
            page_size = page_size or settings.zotero_page_size
            max_retries = max_retries or settings.zotero_max_retries
            if default_backoff is None:
                default_backoff = settings.zotero_default_backoff
            request_timeout = request_timeout or settings.zotero_request_timeout

        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.page_size = page_size or PAGE_SIZE
        self.max_retries = max_retries or MAX_RETRIES
        self.default_backoff = DEFAULT_BACKOFF_SECONDS if default_backoff is None else default_backoff
        self.request_timeout = request_timeout
        self._api_key = api_key
        self.session: Optional[aiohttp.ClientSession] = None

        # Library version from the most recent API response
        self.last_library_version = 0

        logger.info(f"Initialized ZoteroWebAPI for user {user_id} at {self.base_url}")

    async def _ensure_session(self):
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout) if self.request_timeout else None
            self.session = aiohttp.ClientSession(
                headers={
                    "Zotero-API-Key": self._api_key,
                    "Zotero-API-Version": "3",
                },
                timeout=timeout,
            )

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/users/{self.user_id}{path}"

    def _backoff_seconds(self, hint: Optional[str]) -> float:
        """Convert a Backoff / Retry-After header value into seconds."""
        if hint is None:
            return self.default_backoff
        try:
            seconds = float(hint)
        except ValueError:
            return self.default_backoff
        # float() also accepts "inf", "nan" and negatives
        if not math.isfinite(seconds) or seconds < 0:
            return self.default_backoff
        return seconds

    async def _request(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        binary: bool = False,
    ) -> tuple[Any, Any]:
        """
        Issue a GET request, retrying while the API signals rate limiting.

        Args:
            path: Path below /users/{user_id}
            params: Query parameters
            binary: Return the raw body instead of decoded JSON

        Returns:
            (payload, headers) tuple

        Raises:
            ZoteroRateLimitError: If still rate limited after max_retries attempts
            ZoteroAPIError: On any other HTTP or transport failure
        """
        await self._ensure_session()
        url = self._url(path)
        query = {k: str(v) for k, v in (params or {}).items()}

        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.session.get(url, params=query) as response:
                    backoff = response.headers.get("Backoff") or response.headers.get("Retry-After")
                    if response.status == 429 or backoff:
                        wait = self._backoff_seconds(backoff)
                        logger.warning(
                            f"Rate limited on {path} (attempt {attempt}/{self.max_retries}), "
                            f"waiting {wait}s"
                        )
                        await asyncio.sleep(wait)
                        continue

                    if response.status >= 400:
                        body = await response.text()
                        logger.error(f"Zotero API error {response.status} on {path}: {body}")
                        raise ZoteroAPIError(
                            f"Zotero API error {response.status}: {body}",
                            status=response.status,
                            body=body,
                        )

                    version = response.headers.get("Last-Modified-Version")
                    if version:
                        try:
                            self.last_library_version = int(version)
                        except ValueError:
                            logger.debug(f"Ignoring malformed Last-Modified-Version: {version}")

                    if binary:
                        payload = await response.read()
                    else:
                        payload = await response.json()
                    return payload, response.headers

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                # ClientTimeout raises a bare TimeoutError with no message
                raise ZoteroAPIError(
                    f"Request to Zotero failed: {str(e) or e.__class__.__name__}"
                ) from e

        raise ZoteroRateLimitError(f"Zotero API: max retries exceeded for {path}", status=429)

    @staticmethod
    def _total_results(headers: Any) -> Optional[int]:
        value = headers.get("Total-Results")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    async def validate_credentials(self) -> ConnectionInfo:
        """
        Validate the API key and user ID by fetching a single item.

        Returns:
            ConnectionInfo; failures are reported in the result, never raised
        """
        try:
            _, headers = await self._request("/items", {"limit": 1})
            return ConnectionInfo(valid=True, total_items=self._total_results(headers) or 0)
        except Exception as e:
            logger.info(f"Credential validation failed: {e}")
            return ConnectionInfo(valid=False, total_items=0, error=str(e) or "Unknown error")

    async def fetch_items(self, since_version: int = 0) -> list[dict[str, Any]]:
        """
        Fetch all top-level items modified since a library version.

        Args:
            since_version: Library version cursor; 0 fetches the whole library

        Returns:
            Items in server order (most recently modified first)

        Raises:
            ZoteroAPIError: If any page request fails
        """
        all_items: list[dict[str, Any]] = []
        start = 0

        if since_version > 0:
            logger.info(f"Fetching items since version {since_version}")
        else:
            logger.info("Fetching all items")

        while True:
            params: dict[str, Any] = {
                "format": "json",
                "itemType": "-attachment || note",
                "limit": self.page_size,
                "start": start,
                "sort": "dateModified",
                "direction": "desc",
            }
            if since_version > 0:
                params["since"] = since_version

            items, headers = await self._request("/items", params)
            if not isinstance(items, list):
                break

            all_items.extend(items)
            start += self.page_size

            # A short page means we've reached the end
            if len(items) < self.page_size:
                break

            total = self._total_results(headers)
            if total is not None and start >= total:
                break

        logger.info(
            f"Retrieved {len(all_items)} items (library version {self.last_library_version})"
        )
        return all_items

    async def fetch_child_items(self, parent_key: str) -> list[dict[str, Any]]:
        """
        Fetch child items (attachments, notes) of an item.

        Args:
            parent_key: Parent item key

        Returns:
            List of child item dictionaries
        """
        children, _ = await self._request(f"/items/{parent_key}/children", {"format": "json"})
        return children if isinstance(children, list) else []

    async def download_file(self, item_key: str) -> bytes:
        """
        Download the binary content of an attachment item.

        Args:
            item_key: Attachment item key

        Returns:
            File content as bytes
        """
        content, _ = await self._request(f"/items/{item_key}/file", binary=True)
        return content
