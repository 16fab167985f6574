"""
Field Normalizer

Maps a raw row onto the canonical book entry shape and coerces its types.

Coercion never raises for a bad value: unparsable dates, page counts and
series positions become absent. A row is rejected only when it has neither a
title nor an ISBN, when its title or author is too long to store, or when it
cannot be read at all.
"""

import math
import re
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Optional

from loguru import logger

from shelfwise.identification.metadata_cleaning import normalize_isbn
from shelfwise.importing.columns import resolve_columns
from shelfwise.importing.errors import RejectionReason, RowRejected

TRUTHY = {"yes", "true", "1"}

# Matches the title and author column widths in storage
MAX_TEXT_LENGTH = 500

# Written forms tried after ISO parsing
DATE_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)

SLASHED_US = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
SLASHED_ISO = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")


@dataclass
class NormalizedBookEntry:
    """One input row in canonical form."""

    title: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    page_count: Optional[int] = None
    genre: Optional[str] = None
    synopsis: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    series_name: Optional[str] = None
    series_position: Optional[float] = None
    date_finished: Optional[date] = None
    owned: Optional[bool] = None

    # Goodreads "Exclusive Shelf" (read, to-read, currently-reading)
    shelf: Optional[str] = None
    row_number: Optional[int] = None

    @property
    def display_title(self) -> str:
        return self.title or f"ISBN {self.isbn}"

    def to_dict(self) -> dict:
        """Convert to dictionary (snake_case, ISO dates)."""
        data = asdict(self)
        data["date_finished"] = self.date_finished.isoformat() if self.date_finished else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'NormalizedBookEntry':
        """
        Rebuild an entry from its round-tripped form.

        Values are re-coerced, so a client may send back edited strings.
        """
        tags = parse_tags(data.get("tags"))
        return cls(
            title=_clean_text(data.get("title")),
            isbn=normalize_isbn(data.get("isbn")),
            author=_clean_text(data.get("author")),
            page_count=parse_page_count(data.get("page_count")),
            genre=_clean_text(data.get("genre")),
            synopsis=_clean_text(data.get("synopsis")),
            tags=tags,
            series_name=_clean_text(data.get("series_name")),
            series_position=parse_float(data.get("series_position")),
            date_finished=parse_date(data.get("date_finished")),
            owned=parse_owned(data.get("owned")) if data.get("owned") is not None else None,
            shelf=_clean_text(data.get("shelf")),
            row_number=data.get("row_number"),
        )


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a completion date.

    Tries, in order: date/datetime objects (spreadsheet cells), ISO dates and
    timestamps, common written forms, MM/DD/YYYY, then YYYY/MM/DD.
    Single-digit month and day are zero-padded. Anything else is absent.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    match = SLASHED_US.match(text)
    if match:
        month, day, year = match.groups()
        return _safe_date(f"{year}-{month.zfill(2)}-{day.zfill(2)}")

    match = SLASHED_ISO.match(text)
    if match:
        year, month, day = match.groups()
        return _safe_date(f"{year}-{month.zfill(2)}-{day.zfill(2)}")

    return None


def _safe_date(iso: str) -> Optional[date]:
    try:
        return date.fromisoformat(iso)
    except ValueError:
        return None


def parse_owned(value: Any) -> bool:
    """
    Interpret a boolean-ish ownership flag.

    "yes"/"true"/"1" (any case) are true. A count of owned copies greater
    than zero is also true. Everything else is false.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0

    text = str(value).strip().lower()
    if text in TRUTHY:
        return True

    try:
        return float(text) > 0
    except ValueError:
        return False


def parse_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_int(value: Any) -> Optional[int]:
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def parse_page_count(value: Any) -> Optional[int]:
    """Page counts of zero or less are treated as unknown."""
    pages = parse_int(value)
    if pages is None or pages <= 0:
        return None
    return pages


def parse_tags(value: Any) -> list[str]:
    """Split tags on commas or semicolons; lists are kept as given."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        items = re.split(r"[,;]", str(value))
    return [t.strip() for t in items if t and t.strip()]


def _first_value(row: dict, headers: list[str]) -> Any:
    """First non-empty cell among the candidate headers."""
    for header in headers:
        value = row.get(header)
        if value is not None and str(value).strip() != "":
            return value
    return None


def normalize_row(
    row: dict,
    row_number: int,
    columns: Optional[dict[str, list[str]]] = None,
) -> NormalizedBookEntry:
    """
    Normalize one raw row.

    Args:
        row: Raw column -> value mapping
        row_number: 1-based position in the file, for error reporting
        columns: Pre-resolved column map (resolved from the row when omitted)

    Returns:
        NormalizedBookEntry

    Raises:
        RowRejected: No title and no ISBN, or the row is unreadable
    """
    if not isinstance(row, dict):
        raise RowRejected(RejectionReason.UNPARSABLE_ROW, row_number,
                          detail=f"Expected a mapping, got {type(row).__name__}")

    if columns is None:
        columns = resolve_columns(row.keys())

    def cell(name: str) -> Any:
        return _first_value(row, columns.get(name, []))

    isbn = None
    for header in columns.get("isbn", []):
        isbn = normalize_isbn(row.get(header))
        if isbn:
            break

    owned_value = cell("owned")

    entry = NormalizedBookEntry(
        title=_clean_text(cell("title")),
        isbn=isbn,
        author=_clean_text(cell("author")),
        page_count=parse_page_count(cell("page_count")),
        genre=_clean_text(cell("genre")),
        synopsis=_clean_text(cell("synopsis")),
        tags=parse_tags(cell("tags")),
        series_name=_clean_text(cell("series_name")),
        series_position=parse_float(cell("series_position")),
        date_finished=parse_date(cell("date_finished")),
        owned=parse_owned(owned_value) if owned_value is not None else None,
        shelf=_clean_text(cell("shelf")),
        row_number=row_number,
    )

    if not entry.title and not entry.isbn:
        logger.debug(f"Row {row_number} has neither title nor ISBN")
        raise RowRejected(RejectionReason.MISSING_TITLE_AND_ISBN, row_number,
                          detail="Each book needs at least a title or an ISBN")

    for name in ("title", "author"):
        value = getattr(entry, name)
        if value and len(value) > MAX_TEXT_LENGTH:
            raise RowRejected(RejectionReason.UNPARSABLE_ROW, row_number,
                              detail=f"{name.capitalize()} is longer than {MAX_TEXT_LENGTH} characters")

    return entry
