"""
Book Repository for Shelfwise

Structured storage for library and completed books using SQLAlchemy:
- PostgreSQL for production
- SQLite for development/testing
- One repository for both record kinds, selected per call by RecordKind

Design Decisions:
1. SQLAlchemy ORM: Portable across databases
2. Every query is scoped by user_id
3. Uniqueness on (user_id, isbn) is enforced by the database, not here
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import (
    Base,
    MODELS,
    CompletedBookModel,
    LibraryBookModel,
    ReadingStatus,
    RecordKind,
)


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: str
    kind: RecordKind
    user_id: str
    title: str

    # Optional fields
    isbn: Optional[str] = None
    author: Optional[str] = None
    page_count: Optional[int] = None
    genre: Optional[str] = None
    synopsis: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    series_name: Optional[str] = None
    series_position: Optional[float] = None
    date_finished: Optional[date] = None

    # Library-only
    reading_status: Optional[str] = None

    # Completed-only
    owned: bool = False
    library_book_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model) -> "StoredBook":
        """Create from SQLAlchemy model."""
        is_library = isinstance(model, LibraryBookModel)
        return cls(
            id=model.id,
            kind=RecordKind.LIBRARY if is_library else RecordKind.COMPLETED,
            user_id=model.user_id,
            title=model.title,
            isbn=model.isbn,
            author=model.author,
            page_count=model.page_count,
            genre=model.genre,
            synopsis=model.synopsis,
            tags=model.tags or [],
            series_name=model.series_name,
            series_position=model.series_position,
            date_finished=model.date_finished,
            reading_status=model.reading_status if is_library else None,
            owned=bool(getattr(model, "owned", False)) if not is_library else True,
            library_book_id=getattr(model, "library_book_id", None),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "page_count": self.page_count,
            "genre": self.genre,
            "synopsis": self.synopsis,
            "tags": self.tags,
            "series_name": self.series_name,
            "series_position": self.series_position,
            "date_finished": self.date_finished.isoformat() if self.date_finished else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.kind == RecordKind.LIBRARY:
            data["reading_status"] = self.reading_status
        else:
            data["owned"] = self.owned
            data["library_book_id"] = self.library_book_id
        return data


class BookRepository:
    """
    Repository for library and completed book records.

    Usage:
        repo = BookRepository("sqlite:///shelfwise.db")

        book = repo.create(
            RecordKind.COMPLETED,
            user_id="user-1",
            title="Dune",
            author="Frank Herbert",
            isbn="9780441013593",
        )

        existing = repo.find_match(RecordKind.LIBRARY, "user-1", isbn="9780441013593")
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        sqlite_path: Optional[Path] = None,
        echo: bool = False,
    ):
        """
        Initialize repository.

        Args:
            database_url: SQLAlchemy database URL
            sqlite_path: Path for SQLite database
            echo: Log emitted SQL
        """
        if database_url:
            # Strip async drivers for sync engine
            self.database_url = database_url.replace("+aiosqlite", "").replace("+asyncpg", "")
        elif sqlite_path:
            self.database_url = f"sqlite:///{sqlite_path}"
        else:
            # Default to in-memory SQLite
            self.database_url = "sqlite:///:memory:"

        engine_kwargs = {"echo": echo}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.database_url or self.database_url == "sqlite://":
                # Every session must see the same in-memory database
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)

        # Create tables
        Base.metadata.create_all(self.engine)

        # Session factory
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"BookRepository initialized: {self.database_url[:50]}...")

    def get_session(self) -> Session:
        """Get database session."""
        return self.SessionLocal()

    def create(
        self,
        kind: RecordKind,
        user_id: str,
        title: str,
        **fields,
    ) -> StoredBook:
        """
        Insert a new record.

        Args:
            kind: Target record store
            user_id: Owning user
            title: Book title
            **fields: Remaining column values

        Returns:
            Created StoredBook

        Raises:
            sqlalchemy.exc.IntegrityError: On a (user_id, isbn) collision
        """
        model_cls = MODELS[kind]
        with self.get_session() as session:
            record = model_cls(
                id=str(uuid.uuid4()),
                user_id=user_id,
                title=title,
                **fields,
            )
            session.add(record)
            session.commit()
            session.refresh(record)

            logger.debug(f"Created {kind.value} record {record.id} for user {user_id}: {title}")
            return StoredBook.from_model(record)

    def get(self, kind: RecordKind, user_id: str, record_id: str) -> Optional[StoredBook]:
        """
        Get record by ID.

        Args:
            kind: Record store
            user_id: Owning user
            record_id: Record ID

        Returns:
            StoredBook or None
        """
        model_cls = MODELS[kind]
        with self.get_session() as session:
            record = session.query(model_cls).filter(
                model_cls.id == record_id,
                model_cls.user_id == user_id,
            ).first()

            if record:
                return StoredBook.from_model(record)
            return None

    def find_by_isbn(self, kind: RecordKind, user_id: str, isbn: str) -> Optional[StoredBook]:
        """
        Get record by exact ISBN.

        Args:
            kind: Record store
            user_id: Owning user
            isbn: Normalized ISBN

        Returns:
            StoredBook or None
        """
        if not isbn:
            return None

        model_cls = MODELS[kind]
        with self.get_session() as session:
            record = session.query(model_cls).filter(
                model_cls.user_id == user_id,
                model_cls.isbn == isbn,
            ).first()

            if record:
                return StoredBook.from_model(record)
            return None

    def find_by_title_author(
        self,
        kind: RecordKind,
        user_id: str,
        title: str,
        author: str,
    ) -> Optional[StoredBook]:
        """
        Get record by case-insensitive exact title and author.

        No punctuation or diacritic folding is applied: "The Hobbit" does not
        match "The Hobbit: Special Edition".

        Args:
            kind: Record store
            user_id: Owning user
            title: Book title
            author: Author name

        Returns:
            StoredBook or None
        """
        if not title or not author:
            return None

        model_cls = MODELS[kind]
        with self.get_session() as session:
            record = session.query(model_cls).filter(
                model_cls.user_id == user_id,
                func.lower(model_cls.title) == title.strip().lower(),
                func.lower(model_cls.author) == author.strip().lower(),
            ).first()

            if record:
                return StoredBook.from_model(record)
            return None

    def find_by_title_without_author(
        self,
        kind: RecordKind,
        user_id: str,
        title: str,
    ) -> Optional[StoredBook]:
        """Get a record with the same title (case-insensitive) and no author."""
        if not title:
            return None

        model_cls = MODELS[kind]
        with self.get_session() as session:
            record = session.query(model_cls).filter(
                model_cls.user_id == user_id,
                func.lower(model_cls.title) == title.strip().lower(),
                model_cls.author.is_(None),
            ).first()

            if record:
                return StoredBook.from_model(record)
            return None

    def find_match(
        self,
        kind: RecordKind,
        user_id: str,
        isbn: Optional[str] = None,
        title: Optional[str] = None,
        author: Optional[str] = None,
    ) -> Optional[StoredBook]:
        """
        Match by ISBN first, then by title and author.

        An entry with only a title matches a stored record that also has no
        author.
        """
        match = self.find_by_isbn(kind, user_id, isbn) if isbn else None
        if match is None and title and author:
            match = self.find_by_title_author(kind, user_id, title, author)
        elif match is None and title and not isbn:
            match = self.find_by_title_without_author(kind, user_id, title)
        return match

    def mark_read(
        self,
        user_id: str,
        book_id: str,
        date_finished: Optional[date] = None,
    ) -> Optional[StoredBook]:
        """
        Mark a library book as read.

        Args:
            user_id: Owning user
            book_id: Library book ID
            date_finished: Completion date; left untouched when None

        Returns:
            Updated StoredBook or None if the book does not exist
        """
        with self.get_session() as session:
            book = session.query(LibraryBookModel).filter(
                LibraryBookModel.id == book_id,
                LibraryBookModel.user_id == user_id,
            ).first()

            if not book:
                return None

            book.reading_status = ReadingStatus.READ.value
            if date_finished is not None:
                book.date_finished = date_finished
            book.updated_at = datetime.utcnow()
            session.commit()
            session.refresh(book)

            return StoredBook.from_model(book)

    def link_library_book(
        self,
        user_id: str,
        completed_id: str,
        library_book_id: str,
    ) -> Optional[StoredBook]:
        """Point a completed book at the library copy of the same book."""
        with self.get_session() as session:
            record = session.query(CompletedBookModel).filter(
                CompletedBookModel.id == completed_id,
                CompletedBookModel.user_id == user_id,
            ).first()

            if not record:
                return None

            record.library_book_id = library_book_id
            record.owned = True
            session.commit()
            session.refresh(record)

            return StoredBook.from_model(record)

    def list_books(
        self,
        kind: RecordKind,
        user_id: str,
        limit: int = 1000,
    ) -> list[StoredBook]:
        """
        List a user's records, oldest first.

        Args:
            kind: Record store
            user_id: Owning user
            limit: Max results

        Returns:
            List of StoredBooks
        """
        model_cls = MODELS[kind]
        with self.get_session() as session:
            records = session.query(model_cls).filter(
                model_cls.user_id == user_id,
            ).order_by(model_cls.created_at.asc()).limit(limit).all()

            return [StoredBook.from_model(r) for r in records]

    def count(self, kind: RecordKind, user_id: str) -> int:
        """Count a user's records."""
        model_cls = MODELS[kind]
        with self.get_session() as session:
            return session.query(func.count(model_cls.id)).filter(
                model_cls.user_id == user_id,
            ).scalar() or 0
