"""
Helpers for reading fields out of raw Zotero item dictionaries.
"""

import re
from typing import Any, Optional

YEAR_PATTERN = re.compile(r"(\d{4})")

# Item types that are never imported as papers
NON_PAPER_TYPES = ("attachment", "note", "annotation")


def parse_year(date_str: Optional[str]) -> Optional[int]:
    """
    Extract the publication year from a Zotero date string.

    Zotero dates are free-form ("2024", "2024-03-15", "March 2024", ...),
    so the first run of four digits is taken as the year.

    Returns:
        The year, or None if the string is empty or holds no 4-digit run
    """
    if not date_str:
        return None
    match = YEAR_PATTERN.search(date_str)
    return int(match.group(1)) if match else None


def extract_authors(creators: Optional[list[dict[str, Any]]]) -> list[str]:
    """
    Extract author display names from a Zotero creator list.

    Only creators with creatorType "author" are kept, in order. Single-field
    names are used as-is; two-field names become "Last, First".
    """
    if not creators:
        return []

    authors = []
    for creator in creators:
        if creator.get("creatorType") != "author":
            continue
        name = creator.get("name")
        first_name = creator.get("firstName")
        last_name = creator.get("lastName")
        if name:
            authors.append(name)
        elif last_name and first_name:
            authors.append(f"{last_name}, {first_name}")
        else:
            authors.append(last_name or first_name or "Unknown")
    return authors


def is_paper(item: dict[str, Any]) -> bool:
    """True for regular bibliographic items (not attachments, notes or annotations)."""
    item_type = item.get("data", {}).get("itemType")
    return item_type not in NON_PAPER_TYPES


def find_pdf_attachment(children: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Return the first stored (non-link) PDF attachment among an item's children."""
    for child in children:
        data = child.get("data", {})
        if (
            data.get("itemType") == "attachment"
            and data.get("contentType") == "application/pdf"
            and data.get("linkMode") != "linked_url"
        ):
            return child
    return None
