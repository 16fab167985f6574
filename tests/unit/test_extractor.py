"""
Unit tests for the tabular extractor.
"""

import base64
import io
import json

import pandas as pd
import pytest

from shelfwise.importing.errors import MalformedFileError, UnsupportedFormatError
from shelfwise.importing.extractor import extract_rows, format_from_filename


class TestJsonExtraction:
    """Tests for JSON input."""

    def test_bare_array(self):
        data = json.dumps([{"title": "Dune"}, {"title": "Emma"}])

        rows = extract_rows(data, "json")

        assert rows == [{"title": "Dune"}, {"title": "Emma"}]

    def test_books_wrapper(self):
        data = json.dumps({"exported": "2024-01-01", "books": [{"title": "Dune", "isbn": "9780441013593"}]})

        rows = extract_rows(data, "json")

        assert rows == [{"title": "Dune", "isbn": "9780441013593"}]

    def test_single_object_is_one_row(self):
        rows = extract_rows(json.dumps({"title": "Dune"}), "json")

        assert rows == [{"title": "Dune"}]

    def test_bytes_with_bom(self):
        data = "\ufeff" + json.dumps([{"title": "Dune"}])

        rows = extract_rows(data.encode("utf-8"), "json")

        assert rows[0]["title"] == "Dune"

    def test_invalid_json_is_malformed(self):
        with pytest.raises(MalformedFileError) as exc_info:
            extract_rows("[{title: Dune}", "json")

        assert exc_info.value.status_code == 400

    def test_non_object_rows_are_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows(json.dumps(["Dune", "Emma"]), "json")

    def test_empty_array_is_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows("[]", "json")

    def test_scalar_is_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows("42", "json")


class TestCsvExtraction:
    """Tests for CSV input."""

    def test_header_and_rows(self):
        data = "title,author,isbn\nDune,Frank Herbert,9780441013593\nEmma,Jane Austen,\n"

        rows = extract_rows(data, "csv")

        assert rows == [
            {"title": "Dune", "author": "Frank Herbert", "isbn": "9780441013593"},
            {"title": "Emma", "author": "Jane Austen", "isbn": ""},
        ]

    def test_quoted_fields(self):
        data = (
            'title,author,synopsis\n'
            '"Dune, Deluxe Edition",Frank Herbert,"A ""classic""\nspanning lines"\n'
        )

        rows = extract_rows(data, "csv")

        assert len(rows) == 1
        assert rows[0]["title"] == "Dune, Deluxe Edition"
        assert rows[0]["synopsis"] == 'A "classic"\nspanning lines'

    def test_leading_and_inner_blank_lines_skipped(self):
        data = "\n\n  \ntitle,author\n\nDune,Frank Herbert\n,\n\nEmma,Jane Austen\n"

        rows = extract_rows(data, "csv")

        assert [r["title"] for r in rows] == ["Dune", "Emma"]

    def test_short_rows_are_padded(self):
        rows = extract_rows("title,author,isbn\nDune\n", "csv")

        assert rows == [{"title": "Dune", "author": "", "isbn": ""}]

    def test_header_only_is_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows("title,author\n", "csv")

    def test_empty_is_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows("\n\n", "csv")

    def test_extraction_is_idempotent(self):
        data = 'title,author\n"Dune, Part 1",Frank Herbert\nEmma,Jane Austen\n'

        assert extract_rows(data, "csv") == extract_rows(data, "csv")


class TestSpreadsheetExtraction:
    """Tests for XLSX input."""

    @pytest.fixture
    def xlsx_bytes(self) -> bytes:
        frame = pd.DataFrame(
            [
                {"Title": "Dune", "Author": "Frank Herbert", "ISBN": "9780441013593", "Series Number": 1},
                {"Title": None, "Author": None, "ISBN": None, "Series Number": None},
                {"Title": "Emma", "Author": "Jane Austen", "ISBN": None, "Series Number": None},
            ]
        )
        buffer = io.BytesIO()
        frame.to_excel(buffer, index=False, engine="openpyxl")
        return buffer.getvalue()

    def test_first_sheet_rows(self, xlsx_bytes):
        rows = extract_rows(xlsx_bytes, "xlsx")

        assert len(rows) == 2
        assert rows[0]["Title"] == "Dune"
        assert rows[1]["Title"] == "Emma"
        assert rows[1]["ISBN"] is None

    def test_base64_text(self, xlsx_bytes):
        encoded = base64.b64encode(xlsx_bytes).decode("ascii")

        rows = extract_rows(encoded, "xlsx")

        assert rows[0]["Author"] == "Frank Herbert"

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedFileError):
            extract_rows(b"this is not a spreadsheet", "xlsx")


class TestFormats:
    """Tests for format handling."""

    @pytest.mark.parametrize("fmt", ["pdf", "", "txt"])
    def test_unsupported_format(self, fmt):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            extract_rows("title\nDune\n", fmt)

        assert exc_info.value.status_code == 415

    def test_format_is_case_insensitive(self):
        assert extract_rows("title\nDune\n", "CSV") == [{"title": "Dune"}]

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("books.json", "json"),
            ("goodreads_library_export.CSV", "csv"),
            ("reading log.xlsx", "xlsx"),
            ("old.xls", "xls"),
        ],
    )
    def test_format_from_filename(self, filename, expected):
        assert format_from_filename(filename) == expected

    def test_format_from_filename_rejects_unknown(self):
        with pytest.raises(UnsupportedFormatError):
            format_from_filename("books.numbers")
