"""
Review Session

Immutable holder for a classification result and the user's per-item choices.

A session is never edited in place. Every change goes through reduce(), which
returns a new session:

    session = ReviewSession.start(result)
    session = reduce(session, ToggleItem(Bucket.NOT_FOUND, 0))
    session = reduce(session, SelectAll(Bucket.LIBRARY_UPDATE, False))
    decisions = session.decisions()

Only NotFound items ("include anyway") and LibraryUpdate items ("apply
update") are selectable. Found items are always imported; duplicates never
are. NotFound items start skipped; LibraryUpdate items start applied.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional, Union

from shelfwise.importing.classifier import Bucket, ClassificationResult, ClassifiedItem
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.storage import RecordKind

SELECTABLE = (Bucket.NOT_FOUND, Bucket.LIBRARY_UPDATE)

DEFAULT_SELECTION = {
    Bucket.NOT_FOUND: False,
    Bucket.LIBRARY_UPDATE: True,
}


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class ToggleItem:
    bucket: Bucket
    index: int


@dataclass(frozen=True)
class SetItem:
    bucket: Bucket
    index: int
    selected: bool


@dataclass(frozen=True)
class SelectAll:
    """Select or skip every item in one bucket."""
    bucket: Bucket
    selected: bool


Action = Union[ToggleItem, SetItem, SelectAll]


# =============================================================================
# Decisions
# =============================================================================

@dataclass
class LibraryUpdateRequest:
    """Mark one library book read."""
    book_id: str
    new_date_finished: Optional[date] = None
    title: Optional[str] = None


@dataclass
class ImportDecisionSet:
    """The finalized choices handed to the commit engine."""
    books_to_import: list[NormalizedBookEntry] = field(default_factory=list)
    library_updates: list[LibraryUpdateRequest] = field(default_factory=list)
    target: RecordKind = RecordKind.COMPLETED


# =============================================================================
# Session
# =============================================================================

@dataclass(frozen=True)
class ReviewSession:
    """Classification result plus selections, one flag per selectable item."""

    result: ClassificationResult
    include_not_found: tuple[bool, ...] = ()
    apply_updates: tuple[bool, ...] = ()

    @classmethod
    def start(cls, result: ClassificationResult) -> 'ReviewSession':
        """New session with default selections."""
        return cls(
            result=result,
            include_not_found=(DEFAULT_SELECTION[Bucket.NOT_FOUND],) * len(result.not_found),
            apply_updates=(DEFAULT_SELECTION[Bucket.LIBRARY_UPDATE],) * len(result.library_updates),
        )

    def selections(self, bucket: Bucket) -> tuple[bool, ...]:
        if bucket == Bucket.NOT_FOUND:
            return self.include_not_found
        if bucket == Bucket.LIBRARY_UPDATE:
            return self.apply_updates
        raise ValueError(f"{bucket.value} items are not selectable")

    def is_selected(self, bucket: Bucket, index: int) -> bool:
        if bucket == Bucket.FOUND:
            return True
        if bucket == Bucket.DUPLICATE:
            return False
        return self.selections(bucket)[index]

    def counts(self) -> dict[str, int]:
        """Items per bucket, plus invalid rows."""
        return self.result.counts()

    def selected_counts(self) -> dict[str, int]:
        """How many items of each bucket the commit would act on."""
        return {
            Bucket.FOUND.result_key: len(self.result.found),
            Bucket.NOT_FOUND.result_key: sum(self.include_not_found),
            Bucket.DUPLICATE.result_key: 0,
            Bucket.LIBRARY_UPDATE.result_key: sum(self.apply_updates),
        }

    def skipped_items(self) -> list[ClassifiedItem]:
        """NotFound items the user chose not to include."""
        return [
            item
            for item, included in zip(self.result.not_found, self.include_not_found)
            if not included
        ]

    def decisions(self) -> ImportDecisionSet:
        """Build the decision set for the commit engine."""
        books = [item.payload for item in self.result.found]
        books.extend(
            item.payload
            for item, included in zip(self.result.not_found, self.include_not_found)
            if included
        )

        updates = [
            LibraryUpdateRequest(
                book_id=item.library_book_id,
                new_date_finished=item.new_date_finished,
                title=item.payload.title,
            )
            for item, applied in zip(self.result.library_updates, self.apply_updates)
            if applied
        ]

        return ImportDecisionSet(
            books_to_import=books,
            library_updates=updates,
            target=self.result.target,
        )


def _with_selections(session: ReviewSession, bucket: Bucket, values: tuple[bool, ...]) -> ReviewSession:
    if bucket == Bucket.NOT_FOUND:
        return replace(session, include_not_found=values)
    return replace(session, apply_updates=values)


def reduce(session: ReviewSession, action: Action) -> ReviewSession:
    """
    Apply one action and return the new session.

    Raises:
        ValueError: Bucket is not selectable
        IndexError: Item index out of range
    """
    current = session.selections(action.bucket)

    if isinstance(action, SelectAll):
        return _with_selections(session, action.bucket, (action.selected,) * len(current))

    if not 0 <= action.index < len(current):
        raise IndexError(f"No {action.bucket.value} item at index {action.index}")

    if isinstance(action, ToggleItem):
        value = not current[action.index]
    elif isinstance(action, SetItem):
        value = action.selected
    else:
        raise TypeError(f"Unknown action: {action!r}")

    values = current[:action.index] + (value,) + current[action.index + 1:]
    return _with_selections(session, action.bucket, values)
