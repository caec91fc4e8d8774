"""
Exceptions raised by the Zotero Web API client.
"""

from typing import Optional


class ZoteroAPIError(Exception):
    """A Zotero request failed with a non-retryable error."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class ZoteroRateLimitError(ZoteroAPIError):
    """The API kept signalling rate limiting after every retry was spent."""
