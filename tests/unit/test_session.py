"""
Unit tests for the review session reducer.
"""

from datetime import date

import pytest

from shelfwise.importing.classifier import Bucket, ClassificationResult, ClassifiedItem
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.importing.session import (
    ReviewSession,
    SelectAll,
    SetItem,
    ToggleItem,
    reduce,
)
from shelfwise.storage import RecordKind


def entry(title: str, **fields) -> NormalizedBookEntry:
    return NormalizedBookEntry(title=title, **fields)


@pytest.fixture
def result() -> ClassificationResult:
    dune = entry("Dune", isbn="9780441013593")
    return ClassificationResult(
        target=RecordKind.COMPLETED,
        items=[
            ClassifiedItem(
                original=entry("dune"), bucket=Bucket.FOUND,
                lookup=entry("Dune", author="Frank Herbert"),
            ),
            ClassifiedItem(original=entry("Rare One"), bucket=Bucket.NOT_FOUND, fallback=entry("Rare One")),
            ClassifiedItem(original=entry("Emma"), bucket=Bucket.DUPLICATE, existing_id="c-1"),
            ClassifiedItem(original=entry("Rare Two"), bucket=Bucket.NOT_FOUND, fallback=entry("Rare Two")),
            ClassifiedItem(
                original=dune, bucket=Bucket.LIBRARY_UPDATE, lookup=dune,
                library_book_id="lib-1", new_date_finished=date(2024, 3, 1),
            ),
        ],
    )


class TestReviewSession:
    """Tests for defaults and decisions."""

    def test_defaults(self, result):
        session = ReviewSession.start(result)

        assert session.include_not_found == (False, False)
        assert session.apply_updates == (True,)
        assert session.is_selected(Bucket.FOUND, 0)
        assert not session.is_selected(Bucket.DUPLICATE, 0)

    def test_default_decisions(self, result):
        decisions = ReviewSession.start(result).decisions()

        assert [b.title for b in decisions.books_to_import] == ["Dune"]
        assert len(decisions.library_updates) == 1
        assert decisions.library_updates[0].book_id == "lib-1"
        assert decisions.library_updates[0].new_date_finished == date(2024, 3, 1)
        assert decisions.target == RecordKind.COMPLETED

    def test_included_not_found_uses_row_fields(self, result):
        session = reduce(ReviewSession.start(result), ToggleItem(Bucket.NOT_FOUND, 1))

        titles = [b.title for b in session.decisions().books_to_import]

        assert titles == ["Dune", "Rare Two"]
        assert [i.original.title for i in session.skipped_items()] == ["Rare One"]

    def test_counts(self, result):
        session = reduce(ReviewSession.start(result), SelectAll(Bucket.NOT_FOUND, True))

        assert session.counts() == {
            "found": 1, "notFound": 2, "duplicates": 1, "libraryUpdates": 1, "invalid": 0,
        }
        assert session.selected_counts() == {
            "found": 1, "notFound": 2, "duplicates": 0, "libraryUpdates": 1,
        }


class TestReduce:
    """Tests for reduce()."""

    def test_returns_new_session(self, result):
        start = ReviewSession.start(result)

        toggled = reduce(start, ToggleItem(Bucket.NOT_FOUND, 0))

        assert toggled is not start
        assert start.include_not_found == (False, False)
        assert toggled.include_not_found == (True, False)

    def test_toggle_twice_restores(self, result):
        start = ReviewSession.start(result)

        session = reduce(reduce(start, ToggleItem(Bucket.LIBRARY_UPDATE, 0)), ToggleItem(Bucket.LIBRARY_UPDATE, 0))

        assert session == start

    def test_set_item(self, result):
        session = reduce(ReviewSession.start(result), SetItem(Bucket.LIBRARY_UPDATE, 0, False))

        assert session.decisions().library_updates == []

    def test_select_all(self, result):
        session = reduce(ReviewSession.start(result), SelectAll(Bucket.NOT_FOUND, True))

        assert session.include_not_found == (True, True)
        assert session.skipped_items() == []

    def test_found_not_selectable(self, result):
        with pytest.raises(ValueError):
            reduce(ReviewSession.start(result), ToggleItem(Bucket.FOUND, 0))

    def test_index_out_of_range(self, result):
        with pytest.raises(IndexError):
            reduce(ReviewSession.start(result), ToggleItem(Bucket.NOT_FOUND, 5))

    def test_unknown_action(self, result):
        class Explode:
            bucket = Bucket.NOT_FOUND
            index = 0

        with pytest.raises(TypeError):
            reduce(ReviewSession.start(result), Explode())

    def test_empty_result(self):
        session = ReviewSession.start(ClassificationResult(target=RecordKind.LIBRARY))

        session = reduce(session, SelectAll(Bucket.NOT_FOUND, True))
        decisions = session.decisions()

        assert decisions.books_to_import == []
        assert decisions.library_updates == []
        assert decisions.target == RecordKind.LIBRARY
