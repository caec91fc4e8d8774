"""Zotero library synchronization for the ThreadMed literature manager."""

__version__ = "0.1.0"
