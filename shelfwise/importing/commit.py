"""
Commit Engine

Applies a finalized ImportDecisionSet to the record stores.

Guarantees:
- Per-item isolation: one failing item never undoes or blocks another
- Re-runnable: every insert re-checks for an existing record first, so the
  same decision set applied twice creates nothing the second time
- Writes for one user are serialized; different users run independently
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shelfwise.importing.errors import CommitConflict
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.importing.session import ImportDecisionSet, LibraryUpdateRequest
from shelfwise.storage import BookRepository, ReadingStatus, RecordKind, StoredBook


@dataclass
class CommitResult:
    """Outcome of one commit."""

    imported: int = 0
    updated: int = 0
    added_to_library: int = 0
    skipped: int = 0
    failed: int = 0
    notes: list[str] = field(default_factory=list)

    books: list[StoredBook] = field(default_factory=list)
    updated_library_books: list[StoredBook] = field(default_factory=list)
    new_library_books: list[StoredBook] = field(default_factory=list)

    @property
    def message(self) -> str:
        parts = [
            f"{self.imported} books imported",
            f"{self.updated} library books updated",
        ]
        if self.added_to_library:
            parts.append(f"{self.added_to_library} added to library")
        if self.skipped:
            parts.append(f"{self.skipped} skipped")
        parts.append(f"{self.failed} failed")
        return "Import complete: " + ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "imported": self.imported,
            "updated": self.updated,
            "added_to_library": self.added_to_library,
            "skipped": self.skipped,
            "failed": self.failed,
            "notes": list(self.notes),
            "books": [b.to_dict() for b in self.books],
            "updated_library_books": [b.to_dict() for b in self.updated_library_books],
            "new_library_books": [b.to_dict() for b in self.new_library_books],
        }


def _record_fields(entry: NormalizedBookEntry) -> dict:
    """Column values shared by both record kinds."""
    return {
        "isbn": entry.isbn,
        "author": entry.author,
        "page_count": entry.page_count,
        "genre": entry.genre,
        "synopsis": entry.synopsis,
        "tags": list(entry.tags),
        "series_name": entry.series_name,
        "series_position": entry.series_position,
        "date_finished": entry.date_finished,
    }


class CommitEngine:
    """
    Writes import decisions for one user at a time.

    Usage:
        engine = CommitEngine(repository)
        result = engine.commit("user-1", session.decisions())
    """

    def __init__(self, repository: BookRepository):
        self.repository = repository
        self._locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _user_lock(self, user_id: str):
        # A user's lock lives only while some commit holds or awaits it
        with self._locks_guard:
            lock = self._locks.setdefault(user_id, threading.Lock())
            self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[user_id] -= 1
                if not self._lock_users[user_id]:
                    del self._lock_users[user_id]
                    del self._locks[user_id]

    def commit(self, user_id: str, decisions: ImportDecisionSet) -> CommitResult:
        """
        Apply a decision set.

        Library updates run first, then new records in the order given.

        Args:
            user_id: Owner of the records
            decisions: Finalized choices from a review session

        Returns:
            CommitResult (always; failures are reported in notes)
        """
        result = CommitResult()

        with self._user_lock(user_id):
            for update in decisions.library_updates:
                self._apply_update(user_id, update, result)

            for entry in decisions.books_to_import:
                self._import_one(user_id, entry, decisions.target, result)

        logger.info(
            f"Commit for user {user_id}: imported={result.imported} updated={result.updated} "
            f"added_to_library={result.added_to_library} skipped={result.skipped} failed={result.failed}"
        )
        return result

    def _apply_update(
        self,
        user_id: str,
        update: LibraryUpdateRequest,
        result: CommitResult,
    ):
        label = update.title or update.book_id
        try:
            book = self.repository.mark_read(user_id, update.book_id, update.new_date_finished)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update library book {update.book_id}: {e}")
            result.failed += 1
            result.notes.append(f'Error updating library book "{label}": {e}')
            return

        if book is None:
            result.failed += 1
            result.notes.append(f'Error updating library book "{label}": not found')
            return

        result.updated += 1
        result.updated_library_books.append(book)

    def _import_one(
        self,
        user_id: str,
        entry: NormalizedBookEntry,
        target: RecordKind,
        result: CommitResult,
    ):
        title = entry.title or entry.display_title

        existing = self.repository.find_match(
            target, user_id, isbn=entry.isbn, title=entry.title, author=entry.author,
        )
        if existing:
            result.skipped += 1
            shelf = "completed books" if target == RecordKind.COMPLETED else "your library"
            result.notes.append(f'Skipped "{title}": already in {shelf}')
            return

        fields = _record_fields(entry)
        if target == RecordKind.COMPLETED:
            fields["owned"] = bool(entry.owned)
        else:
            fields["reading_status"] = (
                ReadingStatus.READ.value if entry.date_finished else ReadingStatus.UNREAD.value
            )

        try:
            record = self.repository.create(target, user_id, title, **fields)
        except IntegrityError as e:
            conflict = CommitConflict(title, detail=str(e.orig))
            logger.warning(conflict.message)
            result.failed += 1
            result.notes.append(conflict.message)
            return
        except SQLAlchemyError as e:
            logger.error(f'Error importing "{title}": {e}')
            result.failed += 1
            result.notes.append(f'Error importing "{title}": {e}')
            return

        result.imported += 1

        if target == RecordKind.COMPLETED and entry.owned:
            record = self._add_to_library(user_id, record, entry, result) or record

        result.books.append(record)

    def _add_to_library(
        self,
        user_id: str,
        completed: StoredBook,
        entry: NormalizedBookEntry,
        result: CommitResult,
    ) -> Optional[StoredBook]:
        """Create or find the library copy of an owned book and link to it."""
        title = completed.title
        library_book = self.repository.find_match(
            RecordKind.LIBRARY, user_id, isbn=entry.isbn, title=entry.title, author=entry.author,
        )

        try:
            if library_book is None:
                library_book = self.repository.create(
                    RecordKind.LIBRARY, user_id, title,
                    reading_status=ReadingStatus.READ.value,
                    **_record_fields(entry),
                )
                result.added_to_library += 1
                result.new_library_books.append(library_book)

            return self.repository.link_library_book(user_id, completed.id, library_book.id)

        except SQLAlchemyError as e:
            logger.warning(f'Failed to add "{title}" to library: {e}')
            result.notes.append(f'Imported "{title}" but could not add it to your library: {e}')
            return None
