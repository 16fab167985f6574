"""
Skipped-items export.

Formats everything an import left behind as a CSV the user can keep:
NotFound items they chose to skip, duplicates, and rejected rows.
"""

import csv
import io
from dataclasses import dataclass
from typing import Iterable

from shelfwise.importing.classifier import InvalidRow
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.storage import RecordKind

CSV_HEADER = ("Title", "Author", "ISBN", "Reason")

NOT_FOUND_REASON = "ISBN not found - user skipped"
DUPLICATE_REASONS = {
    RecordKind.COMPLETED: "Duplicate - already in completed books",
    RecordKind.LIBRARY: "Duplicate - already in library",
}


@dataclass
class SkippedRow:
    title: str = ""
    author: str = ""
    isbn: str = ""
    reason: str = ""


def _pick(original: dict, *names: str) -> str:
    lowered = {str(k).strip().lower(): v for k, v in original.items()}
    for name in names:
        value = lowered.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def collect_skipped_rows(
    skipped_not_found: Iterable[NormalizedBookEntry] = (),
    duplicates: Iterable[NormalizedBookEntry] = (),
    invalid: Iterable[InvalidRow] = (),
    target: RecordKind = RecordKind.COMPLETED,
) -> list[SkippedRow]:
    """Flatten skipped items into export rows, NotFound first."""
    rows = []

    for entry in skipped_not_found:
        rows.append(SkippedRow(entry.title or "", entry.author or "", entry.isbn or "", NOT_FOUND_REASON))

    for entry in duplicates:
        rows.append(SkippedRow(entry.title or "", entry.author or "", entry.isbn or "",
                               DUPLICATE_REASONS[target]))

    for row in invalid:
        rows.append(SkippedRow(
            title=_pick(row.original, "title", "book title", "name"),
            author=_pick(row.original, "author", "authors"),
            isbn=_pick(row.original, "isbn13", "isbn", "isbn10"),
            reason=row.reason.value,
        ))

    return rows


def render_skipped_csv(rows: Iterable[SkippedRow]) -> str:
    """
    Render skipped rows as CSV text.

    Fields containing commas, quotes or newlines are quoted and inner quotes
    doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([row.title, row.author, row.isbn, row.reason])
    return buffer.getvalue()
