"""
Data models for papers stored in the local library.
"""

from typing import Optional
from pydantic import BaseModel, Field


class PaperInput(BaseModel):
    """Fields accepted when creating or upserting a paper."""

    title: str = Field(..., description="Paper title")
    year: Optional[int] = Field(None, description="Publication year")
    doi: Optional[str] = Field(None, description="DOI")
    journal: Optional[str] = Field(None, description="Publication venue")
    abstract: Optional[str] = Field(None, description="Abstract")
    pdf_filename: Optional[str] = Field(None, description="Attachment filename in the PDF directory")
    zotero_key: Optional[str] = Field(None, description="Zotero item key (None for manually added papers)")
    zotero_version: int = Field(default=0, description="Zotero item version at time of sync")
    authors: list[str] = Field(default_factory=list, description="Ordered author display names")


class Paper(BaseModel):
    """A paper as stored in the local library."""

    id: str = Field(..., description="Local paper ID (uuid4)")
    zotero_key: Optional[str] = Field(None, description="Zotero item key")
    title: str = Field(..., description="Paper title")
    year: Optional[int] = Field(None, description="Publication year")
    doi: Optional[str] = Field(None, description="DOI")
    journal: Optional[str] = Field(None, description="Publication venue")
    abstract: Optional[str] = Field(None, description="Abstract")
    pdf_filename: Optional[str] = Field(None, description="Attachment filename")
    full_text: Optional[str] = Field(None, description="Text extracted from the attachment")
    date_added: str = Field(..., description="When the paper was first stored")
    date_modified: str = Field(..., description="When the paper was last changed")
    zotero_version: int = Field(default=0, description="Last synced Zotero item version")
    authors: list[str] = Field(default_factory=list, description="Ordered author display names")


class SearchHit(BaseModel):
    """A full-text search match."""

    id: str
    title: str
    snippet: Optional[str] = None
    rank: float
