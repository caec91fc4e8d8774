"""
PDF text extraction.

Extracts text from downloaded attachments so it can be added to the
library's full-text index. Extraction is best-effort: extract_text() never
raises and returns an empty string when a file cannot be read.
"""

import logging
from pathlib import Path
from typing import Union
from io import BytesIO

from pypdf import PdfReader


logger = logging.getLogger(__name__)


class PageText:
    """Text from a single PDF page."""

    def __init__(self, page_number: int, text: str):
        """
        Initialize page text.

        Args:
            page_number: 1-indexed page number
            text: Extracted text content
        """
        self.page_number = page_number
        self.text = text.strip()

    def __repr__(self):
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"PageText(page={self.page_number}, text='{preview}')"


class PDFExtractor:
    """
    Extracts text from PDF files with page tracking.

    Uses pypdf for text extraction.
    """

    def extract_from_file(self, pdf_path: Path) -> list[PageText]:
        """
        Extract text from a PDF file.

        Args:
            pdf_path: Path to PDF file

        Returns:
            List of PageText objects for pages with text, in page order

        Raises:
            FileNotFoundError: If PDF file doesn't exist
            ValueError: If file is not a valid PDF
        """
        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        try:
            with open(pdf_path, "rb") as f:
                return self._extract_from_stream(f)
        except Exception as e:
            logger.error(f"Failed to extract text from {pdf_path}: {e}")
            raise ValueError(f"Invalid PDF file: {pdf_path}") from e

    def extract_from_bytes(self, pdf_bytes: bytes) -> list[PageText]:
        """
        Extract text from PDF bytes.

        Raises:
            ValueError: If bytes are not a valid PDF
        """
        try:
            return self._extract_from_stream(BytesIO(pdf_bytes))
        except Exception as e:
            logger.error(f"Failed to extract text from bytes: {e}")
            raise ValueError("Invalid PDF bytes") from e

    def _extract_from_stream(self, stream) -> list[PageText]:
        pages = []
        reader = PdfReader(stream)
        num_pages = len(reader.pages)

        for page_num, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text()

                # Only add pages with content
                if text and text.strip():
                    pages.append(PageText(page_num, text))
                else:
                    logger.debug(f"Page {page_num} has no extractable text")

            except Exception as e:
                logger.warning(f"Failed to extract text from page {page_num}: {e}")
                continue

        logger.debug(f"Extracted text from {len(pages)}/{num_pages} pages")
        return pages

    def extract_text(self, pdf_path: Union[str, Path]) -> str:
        """
        Extract all text from a PDF file, pages concatenated in order.

        Args:
            pdf_path: Path to PDF file

        Returns:
            Extracted text, or an empty string on any failure
        """
        try:
            pages = self.extract_from_file(Path(pdf_path))
            return "\n".join(page.text for page in pages)
        except Exception as e:
            logger.warning(f"Text extraction failed for {pdf_path}: {e}")
            return ""

    def get_page_count(self, pdf_path: Path) -> int:
        """
        Get the number of pages in a PDF.

        Raises:
            FileNotFoundError: If PDF file doesn't exist
            ValueError: If file is not a valid PDF
        """
        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        try:
            with open(pdf_path, "rb") as f:
                reader = PdfReader(f)
                return len(reader.pages)
        except Exception as e:
            logger.error(f"Failed to get page count from {pdf_path}: {e}")
            raise ValueError(f"Invalid PDF file: {pdf_path}") from e


def extract_text(pdf_path: Union[str, Path]) -> str:
    """Module-level shortcut for PDFExtractor().extract_text()."""
    return PDFExtractor().extract_text(pdf_path)
