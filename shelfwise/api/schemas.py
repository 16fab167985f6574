"""
API Schemas for Shelfwise

Pydantic models for request validation and response serialization:
- Book entry models
- Parse (classification) models
- Confirm (commit) models
- Skipped-items export models

Design Decisions:
1. camelCase on the wire, snake_case in Python (populate_by_name accepts both)
2. Separate Request/Response: Clear distinction between inputs and outputs
3. Lenient dates: entries sent back by the client are re-parsed the same way
   file cells are
4. Examples: OpenAPI documentation with realistic examples
"""

from datetime import date, datetime
from typing import Optional, Any

from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel

from shelfwise.importing.normalizer import parse_date
from shelfwise.storage import RecordKind


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Book Schemas
# =============================================================================

class BookDetails(CamelModel):
    """
    A book entry as reported back by parse.

    Unconstrained: whatever the pipeline produced is echoed as-is.
    """

    title: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    page_count: Optional[int] = None
    genre: Optional[str] = None
    synopsis: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    series_name: Optional[str] = None
    series_position: Optional[float] = None
    date_finished: Optional[date] = None
    owned: Optional[bool] = None

    @field_validator("date_finished", mode="before")
    @classmethod
    def lenient_date(cls, value):
        return parse_date(value)


class BookEntry(BookDetails):
    """A book entry sent by the client for commit; limited to what storage holds."""

    title: Optional[str] = Field(None, max_length=500)
    author: Optional[str] = Field(None, max_length=500)
    page_count: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Dune",
                "isbn": "9780441013593",
                "author": "Frank Herbert",
                "pageCount": 896,
                "tags": ["Science Fiction"],
                "dateFinished": "2024-03-01",
                "owned": False,
            }
        },
    )


class StoredBookResponse(CamelModel):
    """A persisted library or completed book."""

    id: str
    title: str
    isbn: Optional[str] = None
    author: Optional[str] = None
    page_count: Optional[int] = None
    genre: Optional[str] = None
    synopsis: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    series_name: Optional[str] = None
    series_position: Optional[float] = None
    date_finished: Optional[date] = None

    # Library books
    reading_status: Optional[str] = None

    # Completed books
    owned: Optional[bool] = None
    library_book_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# Parse Schemas
# =============================================================================

class ParseRequest(CamelModel):
    """Parse an import file held in the request body."""

    data: str = Field(..., min_length=1, description="File content; spreadsheets base64-encoded")
    format: str = Field(..., description="json, csv, xlsx or xls")
    target: RecordKind = RecordKind.COMPLETED

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "data": "title,isbn,date_finished\nDune,9780441013593,2024-03-01\n",
                "format": "csv",
                "target": "completed",
            }
        },
    )


class ClassifiedItemResponse(CamelModel):
    """One classified entry."""

    bucket: str
    original: BookDetails
    lookup: Optional[BookDetails] = None
    fallback: Optional[BookDetails] = None

    existing_id: Optional[str] = None
    existing_title: Optional[str] = None
    existing_kind: Optional[RecordKind] = None

    library_book_id: Optional[str] = None
    current_status: Optional[str] = None
    current_date_finished: Optional[date] = None
    new_date_finished: Optional[date] = None

    reason: Optional[str] = None


class InvalidRowResponse(CamelModel):
    """A rejected input row."""

    row_number: int
    reason: str
    original: dict[str, Any] = Field(default_factory=dict)
    detail: Optional[str] = None


class ParseResults(CamelModel):
    """Entries grouped by bucket, each in input order."""

    found: list[ClassifiedItemResponse] = Field(default_factory=list)
    not_found: list[ClassifiedItemResponse] = Field(default_factory=list)
    duplicates: list[ClassifiedItemResponse] = Field(default_factory=list)
    library_updates: list[ClassifiedItemResponse] = Field(default_factory=list)
    invalid: list[InvalidRowResponse] = Field(default_factory=list)


class ParseResponse(CamelModel):
    """Classification summary and details."""

    target: RecordKind
    total: int
    found: int
    not_found: int
    duplicates: int
    library_updates: int
    invalid: int
    skipped_shelves: int = 0
    results: ParseResults


# =============================================================================
# Confirm Schemas
# =============================================================================

class LibraryUpdateItem(CamelModel):
    """Mark one library book as read."""

    book_id: str = Field(..., min_length=1)
    new_date_finished: Optional[date] = None
    title: Optional[str] = None

    @field_validator("new_date_finished", mode="before")
    @classmethod
    def lenient_date(cls, value):
        return parse_date(value)


class ConfirmRequest(CamelModel):
    """The user's final decisions."""

    books_to_import: list[BookEntry] = Field(default_factory=list)
    library_updates: list[LibraryUpdateItem] = Field(default_factory=list)
    target: RecordKind = RecordKind.COMPLETED


class ConfirmResponse(CamelModel):
    """Commit summary plus the records it wrote."""

    message: str
    imported: int
    updated: int
    added_to_library: int
    skipped: int
    failed: int
    notes: list[str] = Field(default_factory=list)
    books: list[StoredBookResponse] = Field(default_factory=list)
    updated_library_books: list[StoredBookResponse] = Field(default_factory=list)
    new_library_books: list[StoredBookResponse] = Field(default_factory=list)


# =============================================================================
# Skipped Export Schemas
# =============================================================================

class SkippedExportRequest(CamelModel):
    """Items to list in the skipped-items CSV."""

    not_found: list[BookDetails] = Field(default_factory=list)
    duplicates: list[BookDetails] = Field(default_factory=list)
    invalid: list[InvalidRowResponse] = Field(default_factory=list)
    target: RecordKind = RecordKind.COMPLETED


# =============================================================================
# Error / System Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Unsupported format: 'pdf'. Use json, csv, xlsx, or xls",
                "detail": None,
                "code": "UNSUPPORTED_FORMAT",
                "timestamp": "2025-01-20T12:00:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
