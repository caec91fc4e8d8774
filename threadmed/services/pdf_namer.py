"""
Attachment file naming.

Generates academic-style filenames such as Smith2024.pdf,
SmithJones2024.pdf and WangEtAl2024.pdf, adding b/c/d... suffixes when a
name is already taken.
"""

import re
import time
import unicodedata
from pathlib import Path
from typing import Collection, Optional, Union

MAX_NAME_LENGTH = 40
COLLISION_SUFFIXES = "bcdefghijklmnopqrstuvwxyz"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_]")

ExistingFiles = Union[str, Path, Collection[str]]


def extract_last_name(full_name: str) -> str:
    """
    Extract the last name from an author display name.

    Handles "Last, First" and "First Last" formats.
    """
    trimmed = full_name.strip()
    if "," in trimmed:
        return trimmed.split(",", 1)[0].strip()
    parts = trimmed.split()
    return parts[-1] if parts else ""


def sanitize(value: str) -> str:
    """Strip diacritics and everything but [A-Za-z0-9_], truncated to 40 chars."""
    decomposed = unicodedata.normalize("NFD", value)
    without_marks = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _UNSAFE_CHARS.sub("", without_marks)[:MAX_NAME_LENGTH]


def _exists(existing: ExistingFiles, filename: str) -> bool:
    if isinstance(existing, (str, Path)):
        return (Path(existing) / filename).exists()
    return filename in existing


def generate_pdf_filename(
    authors: list[str],
    year: Optional[int],
    existing: ExistingFiles,
) -> str:
    """
    Generate a filename for a paper's PDF attachment.

    Rules:
        - 1 author:  Smith2024.pdf
        - 2 authors: SmithJones2024.pdf
        - 3+ authors: SmithEtAl2024.pdf
        - No author: Untitled2024.pdf
        - No year: SmithNoYear.pdf
        - Collision: Smith2024b.pdf, Smith2024c.pdf, ..., then a timestamp

    Args:
        authors: Ordered author display names
        year: Publication year, if known
        existing: PDF directory to check on disk, or a collection of taken names

    Returns:
        A filename not present in `existing`
    """
    if not authors:
        author_part = "Untitled"
    elif len(authors) == 1:
        author_part = sanitize(extract_last_name(authors[0]))
    elif len(authors) == 2:
        author_part = sanitize(extract_last_name(authors[0])) + sanitize(extract_last_name(authors[1]))
    else:
        author_part = sanitize(extract_last_name(authors[0])) + "EtAl"

    if not author_part:
        author_part = "Untitled"

    year_part = str(year) if year else "NoYear"
    base_name = f"{author_part}{year_part}"

    filename = f"{base_name}.pdf"
    if not _exists(existing, filename):
        return filename

    for suffix in COLLISION_SUFFIXES:
        filename = f"{base_name}{suffix}.pdf"
        if not _exists(existing, filename):
            return filename

    return f"{base_name}_{int(time.time() * 1000)}.pdf"
