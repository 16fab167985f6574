"""
Unit tests for column resolution.
"""

import pytest

from shelfwise.importing.columns import (
    COLUMN_SYNONYMS,
    header_key,
    is_goodreads_export,
    resolve_columns,
)


class TestHeaderKey:

    @pytest.mark.parametrize("header", ["Date Read", "date_read", "DATE  READ", " date__read "])
    def test_folds_case_underscores_and_spacing(self, header):
        assert header_key(header) == "date read"


class TestResolveColumns:
    """Tests for resolve_columns."""

    @pytest.mark.parametrize(
        "field,synonym",
        [(field, synonym) for field, synonyms in COLUMN_SYNONYMS.items() for synonym in synonyms],
    )
    def test_every_synonym_resolves(self, field, synonym):
        header = synonym.upper()

        columns = resolve_columns([header])

        assert columns[field] == [header]

    def test_unknown_headers_are_ignored(self):
        columns = resolve_columns(["Title", "Rating", "Notes"])

        assert columns == {"title": ["Title"]}

    def test_isbn13_preferred_over_isbn(self):
        columns = resolve_columns(["ISBN", "ISBN13"])

        assert columns["isbn"] == ["ISBN13", "ISBN"]

    def test_first_spelling_wins_for_duplicate_headers(self):
        columns = resolve_columns(["title", "Title"])

        assert columns["title"] == ["title"]


class TestGoodreadsDetection:

    def test_goodreads_export_detected(self):
        headers = ["Book Id", "Title", "Author", "Author l-f", "My Rating", "Exclusive Shelf"]

        assert is_goodreads_export(headers)

    def test_plain_file_not_detected(self):
        assert not is_goodreads_export(["title", "author", "isbn", "date_finished"])

    def test_single_signature_column_not_enough(self):
        assert not is_goodreads_export(["Title", "Exclusive Shelf"])
