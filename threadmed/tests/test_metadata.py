"""
Tests for reading fields out of Zotero item dictionaries.
"""

import pytest

from threadmed.zotero.metadata import extract_authors, find_pdf_attachment, is_paper, parse_year
from threadmed.tests.fakes import make_item, make_pdf_attachment


class TestParseYear:
    """Tests for parse_year."""

    @pytest.mark.parametrize("date_str, expected", [
        ("2024", 2024),
        ("2024-03-15", 2024),
        ("March 2023", 2023),
        ("15/03/1999", 1999),
        ("Spring 2021, 2nd edition", 2021),
    ])
    def test_first_four_digit_run(self, date_str, expected):
        """The first run of four digits is the year."""
        assert parse_year(date_str) == expected

    @pytest.mark.parametrize("date_str", [None, "", "no digits here", "n.d.", "Mar 24"])
    def test_no_year(self, date_str):
        """Empty or digit-less dates have no year."""
        assert parse_year(date_str) is None


class TestExtractAuthors:
    """Tests for extract_authors."""

    def test_two_field_name(self):
        creators = [{"creatorType": "author", "firstName": "John", "lastName": "Smith"}]
        assert extract_authors(creators) == ["Smith, John"]

    def test_single_field_name(self):
        creators = [{"creatorType": "author", "name": "World Health Organization"}]
        assert extract_authors(creators) == ["World Health Organization"]

    def test_partial_names(self):
        creators = [
            {"creatorType": "author", "lastName": "Plato"},
            {"creatorType": "author", "firstName": "Madonna"},
            {"creatorType": "author"},
        ]
        assert extract_authors(creators) == ["Plato", "Madonna", "Unknown"]

    def test_non_authors_skipped_order_kept(self):
        """Editors and other creator types are dropped; author order is preserved."""
        creators = [
            {"creatorType": "author", "firstName": "Ada", "lastName": "Zeta"},
            {"creatorType": "editor", "firstName": "Ed", "lastName": "Itor"},
            {"creatorType": "author", "firstName": "Bob", "lastName": "Alpha"},
        ]
        assert extract_authors(creators) == ["Zeta, Ada", "Alpha, Bob"]

    @pytest.mark.parametrize("creators", [None, []])
    def test_no_creators(self, creators):
        assert extract_authors(creators) == []


class TestItemFilters:
    """Tests for is_paper and find_pdf_attachment."""

    @pytest.mark.parametrize("item_type, expected", [
        ("journalArticle", True),
        ("book", True),
        ("preprint", True),
        ("attachment", False),
        ("note", False),
        ("annotation", False),
    ])
    def test_is_paper(self, item_type, expected):
        assert is_paper(make_item("KEY1", 1, item_type=item_type)) is expected

    def test_finds_stored_pdf(self):
        children = [
            {"key": "NOTE1", "data": {"itemType": "note"}},
            make_pdf_attachment("ATT1", "PARENT"),
        ]
        assert find_pdf_attachment(children)["key"] == "ATT1"

    def test_linked_url_is_not_downloadable(self):
        children = [make_pdf_attachment("LINK1", "PARENT", link_mode="linked_url")]
        assert find_pdf_attachment(children) is None

    def test_non_pdf_attachment_ignored(self):
        snapshot = make_pdf_attachment("SNAP1", "PARENT")
        snapshot["data"]["contentType"] = "text/html"
        assert find_pdf_attachment([snapshot]) is None

    def test_first_pdf_wins(self):
        children = [
            make_pdf_attachment("ATT1", "PARENT"),
            make_pdf_attachment("ATT2", "PARENT"),
        ]
        assert find_pdf_attachment(children)["key"] == "ATT1"

    def test_no_children(self):
        assert find_pdf_attachment([]) is None
