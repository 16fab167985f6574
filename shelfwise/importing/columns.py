"""
Column synonym table.

Each canonical field maps to the header spellings accepted for it, in order of
preference. Resolution compares headers case-insensitively and treats runs of
whitespace and underscores as a single space, so "Date_Read", "date read" and
"DATE  READ" all resolve the same way.
"""

import re
from typing import Iterable

COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "title": ("title", "book title", "name"),
    "author": ("author", "authors", "book author", "writer"),
    # ISBN-13 spellings first so Goodreads rows with both prefer the long form
    "isbn": ("isbn13", "isbn-13", "isbn", "isbn10", "isbn-10"),
    "page_count": ("page_count", "pages", "num pages", "number of pages"),
    "genre": ("genre", "genres", "category"),
    "synopsis": ("synopsis", "description", "summary"),
    "tags": ("tags", "bookshelves"),
    "series_name": ("series_name", "series"),
    "series_position": ("series_position", "series number", "book number"),
    "date_finished": (
        "date_finished",
        "date completed",
        "finished",
        "completed",
        "read_at",
        "date read",
        "finished date",
        "read date",
    ),
    "owned": ("owned", "in library", "own", "have", "owned copies"),
    "shelf": ("exclusive shelf",),
}

GOODREADS_SIGNATURE = frozenset({
    "book id",
    "exclusive shelf",
    "bookshelves",
    "my rating",
    "average rating",
    "author l-f",
})
GOODREADS_MIN_MATCHES = 3


def header_key(header) -> str:
    """Fold a header to its comparison form."""
    return re.sub(r"[\s_]+", " ", str(header)).strip().lower()


def candidate_headers(headers: Iterable, field: str) -> list[str]:
    """Every header present for a field, in synonym preference order."""
    by_key: dict[str, str] = {}
    for header in headers:
        by_key.setdefault(header_key(header), header)

    found = []
    for synonym in COLUMN_SYNONYMS[field]:
        header = by_key.get(header_key(synonym))
        if header is not None and header not in found:
            found.append(header)
    return found


def resolve_columns(headers: Iterable) -> dict[str, list[str]]:
    """
    Map canonical fields to the actual headers present in the file.

    Args:
        headers: Column names as they appear in the input

    Returns:
        Dict of canonical field -> matching headers, best first. Fields with
        no matching header are absent. The normalizer takes the first
        non-empty cell, so an empty ISBN13 cell falls back to ISBN.
    """
    headers = list(headers)
    resolved = {}
    for field in COLUMN_SYNONYMS:
        found = candidate_headers(headers, field)
        if found:
            resolved[field] = found
    return resolved


def is_goodreads_export(headers: Iterable) -> bool:
    """Goodreads library exports carry a recognisable set of columns."""
    keys = {header_key(h) for h in headers}
    return len(keys & GOODREADS_SIGNATURE) >= GOODREADS_MIN_MATCHES
