"""
Unit tests for the import service (parse + confirm).
"""

import json
from datetime import date

import pytest

from shelfwise.importing.classifier import Bucket
from shelfwise.importing.errors import MalformedFileError, RejectionReason, UnsupportedFormatError
from shelfwise.importing.session import ReviewSession, SelectAll, reduce
from shelfwise.storage import ReadingStatus, RecordKind

from tests.conftest import USER_ID

pytestmark = pytest.mark.asyncio


class TestParse:
    """Tests for ImportService.parse."""

    async def test_goodreads_export(self, import_service, goodreads_csv):
        result = await import_service.parse(USER_ID, goodreads_csv, "csv")

        assert result.skipped_shelves == 1
        assert result.total == 2
        assert [i.bucket for i in result.items] == [Bucket.FOUND, Bucket.NOT_FOUND]

        dune = result.found[0].payload
        assert dune.isbn == "9780441013593"
        assert dune.owned is True
        assert dune.date_finished == date(2024, 3, 1)

        rare = result.not_found[0].payload
        assert rare.title == "Unknown Rare Book"
        assert rare.date_finished == date(2023, 3, 15)

    async def test_goodreads_shelves_kept_for_library_target(self, import_service, goodreads_csv):
        result = await import_service.parse(USER_ID, goodreads_csv, "csv", RecordKind.LIBRARY)

        assert result.skipped_shelves == 0
        assert result.total == 3

    async def test_invalid_rows_reported_not_fatal(self, import_service):
        data = "title,author,isbn\nDune,Frank Herbert,9780441013593\n,Anonymous,\n"

        result = await import_service.parse(USER_ID, data, "csv")

        assert len(result.found) == 1
        assert len(result.invalid) == 1
        assert result.invalid[0].row_number == 2
        assert result.invalid[0].reason == RejectionReason.MISSING_TITLE_AND_ISBN
        assert result.counts()["invalid"] == 1
        assert result.total == 2

    async def test_json_books_object(self, import_service):
        data = json.dumps({"books": [{"Title": "The Hobbit", "Author": "J.R.R. Tolkien", "owned": "yes"}]})

        result = await import_service.parse(USER_ID, data, "json")

        [item] = result.found
        assert item.payload.isbn == "9780547928227"
        assert item.payload.owned is True

    async def test_fatal_errors_propagate(self, import_service):
        with pytest.raises(UnsupportedFormatError):
            await import_service.parse(USER_ID, "title\nDune\n", "txt")

        with pytest.raises(MalformedFileError):
            await import_service.parse(USER_ID, "{not json", "json")

    async def test_to_dict_shape(self, import_service, goodreads_csv):
        result = await import_service.parse(USER_ID, goodreads_csv, "csv")

        data = result.to_dict()

        assert data["target"] == "completed"
        assert data["found"] == 1
        assert data["notFound"] == 1
        assert set(data["results"]) == {"found", "notFound", "duplicates", "libraryUpdates", "invalid"}


class TestParseThenConfirm:
    """Full two-phase flow through the service."""

    async def test_found_and_included_not_found(self, import_service, repository, goodreads_csv):
        result = await import_service.parse(USER_ID, goodreads_csv, "csv")
        session = reduce(ReviewSession.start(result), SelectAll(Bucket.NOT_FOUND, True))

        commit = import_service.confirm(USER_ID, session.decisions())

        assert commit.imported == 2
        assert commit.added_to_library == 1
        titles = sorted(b.title for b in repository.list_books(RecordKind.COMPLETED, USER_ID))
        assert titles == ["Dune", "Unknown Rare Book"]

    async def test_library_update_then_reparse_is_duplicate(self, import_service, repository):
        library_book = repository.create(
            RecordKind.LIBRARY, USER_ID, "Dune", isbn="9780441013593",
            reading_status=ReadingStatus.UNREAD.value,
        )
        data = "title,isbn,date_finished\nDune,9780441013593,2024-03-01\n"

        first = await import_service.parse(USER_ID, data, "csv")
        commit = import_service.confirm(USER_ID, ReviewSession.start(first).decisions())
        second = await import_service.parse(USER_ID, data, "csv")

        assert [i.bucket for i in first.items] == [Bucket.LIBRARY_UPDATE]
        assert commit.updated == 1
        assert commit.imported == 0
        updated = repository.get(RecordKind.LIBRARY, USER_ID, library_book.id)
        assert updated.reading_status == "read"
        assert updated.date_finished == date(2024, 3, 1)
        assert [i.bucket for i in second.items] == [Bucket.DUPLICATE]

    async def test_reimport_is_all_duplicates(self, import_service, goodreads_csv):
        first = await import_service.parse(USER_ID, goodreads_csv, "csv")
        session = reduce(ReviewSession.start(first), SelectAll(Bucket.NOT_FOUND, True))
        import_service.confirm(USER_ID, session.decisions())

        second = await import_service.parse(USER_ID, goodreads_csv, "csv")

        assert [i.bucket for i in second.items] == [Bucket.DUPLICATE, Bucket.DUPLICATE]
