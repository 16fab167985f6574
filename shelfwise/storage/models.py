"""
Database models for Shelfwise.

Two record kinds share one shape:
- books: the user's owned library, with its own reading-status lifecycle
- completed_books: books the user has finished, owned or not
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Text,
    Date,
    DateTime,
    Boolean,
    JSON,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class RecordKind(str, Enum):
    """Which of the two record stores an operation targets."""
    LIBRARY = "library"
    COMPLETED = "completed"


class ReadingStatus(str, Enum):
    """Library book reading status."""
    UNREAD = "unread"
    READING = "reading"
    READ = "read"


class BookFieldsMixin:
    """Bibliographic columns shared by both record kinds."""

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(64), nullable=False, index=True)

    isbn = Column(String(13))
    title = Column(String(500), nullable=False)
    author = Column(String(500))

    page_count = Column(Integer)
    genre = Column(String(200))
    synopsis = Column(Text)
    tags = Column(JSON, default=list)

    series_name = Column(String(300))
    series_position = Column(Float)

    date_finished = Column(Date)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "page_count": self.page_count,
            "genre": self.genre,
            "synopsis": self.synopsis,
            "tags": self.tags or [],
            "series_name": self.series_name,
            "series_position": self.series_position,
            "date_finished": self.date_finished.isoformat() if self.date_finished else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class LibraryBookModel(BookFieldsMixin, Base):
    """A book the user owns."""

    __tablename__ = "books"

    reading_status = Column(String(20), nullable=False, default=ReadingStatus.UNREAD.value)

    __table_args__ = (
        UniqueConstraint("user_id", "isbn", name="uq_books_user_isbn"),
        Index("idx_books_user_title_author", "user_id", "title", "author"),
    )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reading_status"] = self.reading_status
        return data


class CompletedBookModel(BookFieldsMixin, Base):
    """A book the user has finished reading."""

    __tablename__ = "completed_books"

    owned = Column(Boolean, default=False)
    library_book_id = Column(String(36), ForeignKey("books.id", ondelete="SET NULL"))

    __table_args__ = (
        UniqueConstraint("user_id", "isbn", name="uq_completed_books_user_isbn"),
        Index("idx_completed_user_title_author", "user_id", "title", "author"),
    )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["owned"] = bool(self.owned)
        data["library_book_id"] = self.library_book_id
        return data


MODELS = {
    RecordKind.LIBRARY: LibraryBookModel,
    RecordKind.COMPLETED: CompletedBookModel,
}
