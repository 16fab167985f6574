"""
Storage Module for Shelfwise

Persistent storage for the user's two book collections:
- Library books (owned, with a reading status)
- Completed books (finished, owned or not)
"""

from shelfwise.storage.models import (
    Base,
    RecordKind,
    ReadingStatus,
    LibraryBookModel,
    CompletedBookModel,
)
from shelfwise.storage.book_repository import (
    BookRepository,
    StoredBook,
)

__all__ = [
    # Models
    "Base",
    "RecordKind",
    "ReadingStatus",
    "LibraryBookModel",
    "CompletedBookModel",
    # Book Repository
    "BookRepository",
    "StoredBook",
]
