"""
Matcher / Classifier

Assigns every normalized import entry to exactly one bucket:

- Duplicate: already stored for this user (by ISBN, or by exact
  case-insensitive title + author)
- LibraryUpdate: an owned library book that is not yet marked read
- Found: enrichment resolved the entry and nothing matches
- NotFound: enrichment could not resolve the entry

Design Decisions:
1. Store lookups happen before enrichment so known books never cost a lookup
2. Lookups fan out concurrently under a semaphore; results keep input order
3. Every lookup is bounded by a timeout; a timeout is a NotFound, not an error
4. Items never influence each other; two rows for the same new book both
   classify on their own and the commit engine catches the second one
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Optional

import httpx
from loguru import logger

from shelfwise.identification.metadata_cleaning import normalize_isbn
from shelfwise.identification.metadata_enricher import BookMetadata, MetadataEnricher
from shelfwise.importing.errors import (
    EnrichmentNotFound,
    EnrichmentTimeout,
    ImportPipelineError,
    RejectionReason,
)
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.storage import BookRepository, ReadingStatus, RecordKind, StoredBook


class Bucket(str, Enum):
    """Classification outcome."""
    FOUND = "Found"
    NOT_FOUND = "NotFound"
    DUPLICATE = "Duplicate"
    LIBRARY_UPDATE = "LibraryUpdate"

    @property
    def result_key(self) -> str:
        """Key used for the bucket in parse responses."""
        return {
            Bucket.FOUND: "found",
            Bucket.NOT_FOUND: "notFound",
            Bucket.DUPLICATE: "duplicates",
            Bucket.LIBRARY_UPDATE: "libraryUpdates",
        }[self]


@dataclass
class ClassifiedItem:
    """One entry with its bucket and the payload that bucket carries."""

    original: NormalizedBookEntry
    bucket: Bucket

    # Found / LibraryUpdate: entry merged with resolved metadata
    lookup: Optional[NormalizedBookEntry] = None
    # NotFound: the row's own fields
    fallback: Optional[NormalizedBookEntry] = None

    # Duplicate
    existing_id: Optional[str] = None
    existing_title: Optional[str] = None
    existing_kind: Optional[RecordKind] = None

    # LibraryUpdate
    library_book_id: Optional[str] = None
    current_status: Optional[str] = None
    current_date_finished: Optional[date] = None
    new_date_finished: Optional[date] = None

    # Why enrichment failed, for NotFound
    reason: Optional[str] = None

    @property
    def payload(self) -> NormalizedBookEntry:
        """The entry the commit engine would write."""
        return self.lookup or self.fallback or self.original

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket.value,
            "original": self.original.to_dict(),
            "lookup": self.lookup.to_dict() if self.lookup else None,
            "fallback": self.fallback.to_dict() if self.fallback else None,
            "existing_id": self.existing_id,
            "existing_title": self.existing_title,
            "existing_kind": self.existing_kind.value if self.existing_kind else None,
            "library_book_id": self.library_book_id,
            "current_status": self.current_status,
            "current_date_finished": (
                self.current_date_finished.isoformat() if self.current_date_finished else None
            ),
            "new_date_finished": (
                self.new_date_finished.isoformat() if self.new_date_finished else None
            ),
            "reason": self.reason,
        }


@dataclass
class InvalidRow:
    """A row rejected before classification."""

    row_number: int
    reason: RejectionReason
    original: dict[str, Any] = field(default_factory=dict)
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "row_number": self.row_number,
            "reason": self.reason.value,
            "original": {str(k): _jsonable(v) for k, v in self.original.items()},
            "detail": self.detail,
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass
class ClassificationResult:
    """Everything a parse call produces."""

    target: RecordKind
    items: list[ClassifiedItem] = field(default_factory=list)
    invalid: list[InvalidRow] = field(default_factory=list)
    skipped_shelves: int = 0

    @property
    def total(self) -> int:
        return len(self.items) + len(self.invalid)

    def bucket(self, bucket: Bucket) -> list[ClassifiedItem]:
        """Items in one bucket, in input order."""
        return [item for item in self.items if item.bucket == bucket]

    @property
    def found(self) -> list[ClassifiedItem]:
        return self.bucket(Bucket.FOUND)

    @property
    def not_found(self) -> list[ClassifiedItem]:
        return self.bucket(Bucket.NOT_FOUND)

    @property
    def duplicates(self) -> list[ClassifiedItem]:
        return self.bucket(Bucket.DUPLICATE)

    @property
    def library_updates(self) -> list[ClassifiedItem]:
        return self.bucket(Bucket.LIBRARY_UPDATE)

    def counts(self) -> dict[str, int]:
        counts = {b.result_key: len(self.bucket(b)) for b in Bucket}
        counts["invalid"] = len(self.invalid)
        return counts

    def to_dict(self) -> dict:
        results = {
            b.result_key: [item.to_dict() for item in self.bucket(b)]
            for b in Bucket
        }
        results["invalid"] = [row.to_dict() for row in self.invalid]
        return {
            "target": self.target.value,
            "total": self.total,
            **self.counts(),
            "skipped_shelves": self.skipped_shelves,
            "results": results,
        }


def merge_with_metadata(entry: NormalizedBookEntry, metadata: BookMetadata) -> NormalizedBookEntry:
    """
    Overlay resolved metadata on an entry.

    Metadata wins wherever it has a value. date_finished and owned always come
    from the row.
    """
    return replace(
        entry,
        title=metadata.title or entry.title,
        isbn=normalize_isbn(metadata.primary_isbn) or entry.isbn,
        author=metadata.author or entry.author,
        page_count=metadata.page_count or entry.page_count,
        genre=metadata.genre or entry.genre,
        synopsis=metadata.synopsis or entry.synopsis,
        tags=list(metadata.tags) or list(entry.tags),
        series_name=metadata.series_name or entry.series_name,
        series_position=(
            metadata.series_position
            if metadata.series_position is not None
            else entry.series_position
        ),
    )


class Classifier:
    """
    Classifies normalized entries against one user's stored books.

    Usage:
        classifier = Classifier(repository, enricher, timeout=10.0)
        items = await classifier.classify("user-1", entries, RecordKind.COMPLETED)
    """

    def __init__(
        self,
        repository: BookRepository,
        enricher: MetadataEnricher,
        timeout: float = 10.0,
        max_concurrency: int = 5,
    ):
        """
        Initialize classifier.

        Args:
            repository: Book store to match against
            enricher: Metadata lookup client
            timeout: Seconds allowed for one lookup
            max_concurrency: Lookups in flight at once
        """
        self.repository = repository
        self.enricher = enricher
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)

    async def classify(
        self,
        user_id: str,
        entries: list[NormalizedBookEntry],
        target: RecordKind = RecordKind.COMPLETED,
    ) -> list[ClassifiedItem]:
        """
        Classify entries, preserving input order.

        Args:
            user_id: Owner of the stored books
            entries: Normalized, non-rejected entries
            target: Record kind being imported

        Returns:
            One ClassifiedItem per entry, same order
        """
        items: list[Optional[ClassifiedItem]] = [None] * len(entries)
        pending: list[int] = []

        for index, entry in enumerate(entries):
            item = self._match_stored(user_id, entry, entry, target)
            if item is not None:
                items[index] = item
            else:
                pending.append(index)

        outcomes = await self._enrich_all([entries[i] for i in pending])

        for index, (metadata, error) in zip(pending, outcomes):
            entry = entries[index]
            if metadata is None:
                items[index] = ClassifiedItem(
                    original=entry,
                    bucket=Bucket.NOT_FOUND,
                    fallback=entry,
                    reason=error.message if error else None,
                )
                continue

            resolved = merge_with_metadata(entry, metadata)
            item = self._match_stored(user_id, entry, resolved, target, resolved_only=True)
            items[index] = item or ClassifiedItem(
                original=entry,
                bucket=Bucket.FOUND,
                lookup=resolved,
            )

        counts = {b: sum(1 for i in items if i.bucket == b) for b in Bucket}
        logger.info(
            f"Classified {len(items)} entries for {target.value}: "
            + ", ".join(f"{b.value}={n}" for b, n in counts.items())
        )
        return items

    def _match_stored(
        self,
        user_id: str,
        entry: NormalizedBookEntry,
        candidate: NormalizedBookEntry,
        target: RecordKind,
        resolved_only: bool = False,
    ) -> Optional[ClassifiedItem]:
        """
        Match a candidate against the user's stored books.

        Returns a Duplicate or LibraryUpdate item, or None when nothing
        matches. After enrichment only the resolved keys are compared, since
        the row's own keys were checked already.
        """
        if resolved_only and candidate.isbn == entry.isbn and candidate.title == entry.title \
                and candidate.author == entry.author:
            return None

        existing = self.repository.find_match(
            target, user_id,
            isbn=candidate.isbn,
            title=candidate.title,
            author=candidate.author,
        )
        if existing:
            return self._duplicate(entry, candidate, existing)

        if target != RecordKind.COMPLETED:
            return None

        library_book = self.repository.find_match(
            RecordKind.LIBRARY, user_id,
            isbn=candidate.isbn,
            title=candidate.title,
            author=candidate.author,
        )
        if library_book is None:
            return None

        if library_book.reading_status == ReadingStatus.READ.value:
            return self._duplicate(entry, candidate, library_book)

        return ClassifiedItem(
            original=entry,
            bucket=Bucket.LIBRARY_UPDATE,
            lookup=candidate,
            library_book_id=library_book.id,
            current_status=library_book.reading_status,
            current_date_finished=library_book.date_finished,
            new_date_finished=entry.date_finished,
        )

    def _duplicate(
        self,
        entry: NormalizedBookEntry,
        candidate: NormalizedBookEntry,
        existing: StoredBook,
    ) -> ClassifiedItem:
        return ClassifiedItem(
            original=entry,
            bucket=Bucket.DUPLICATE,
            lookup=candidate if candidate is not entry else None,
            existing_id=existing.id,
            existing_title=existing.title,
            existing_kind=existing.kind,
        )

    async def _enrich_all(
        self,
        entries: list[NormalizedBookEntry],
    ) -> list[tuple[Optional[BookMetadata], Optional[ImportPipelineError]]]:
        """Look up all entries concurrently; results follow input order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(entry: NormalizedBookEntry):
            async with semaphore:
                return await self._enrich(entry)

        return list(await asyncio.gather(*(bounded(e) for e in entries)))

    async def _enrich(
        self,
        entry: NormalizedBookEntry,
    ) -> tuple[Optional[BookMetadata], Optional[ImportPipelineError]]:
        """
        Resolve one entry: by ISBN when present, then by title + author.

        Never raises; failures come back as the error that explains them.
        """
        key = entry.isbn or f'"{entry.title}" by {entry.author or "unknown author"}'

        try:
            metadata = None
            if entry.isbn:
                metadata = await asyncio.wait_for(
                    self.enricher.lookup_by_isbn(entry.isbn), timeout=self.timeout
                )
            if metadata is None and entry.title and entry.author:
                metadata = await asyncio.wait_for(
                    self.enricher.lookup_by_title_author(entry.title, entry.author),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError:
            error = EnrichmentTimeout(key, self.timeout)
            logger.warning(error.message)
            return None, error
        except httpx.HTTPError as e:
            logger.warning(f"Metadata lookup for {key} failed: {e}")
            return None, EnrichmentNotFound(key)
        except Exception:
            # Unexpected payloads must not take down the other lookups
            logger.exception(f"Metadata lookup for {key} raised")
            return None, EnrichmentNotFound(key)

        if metadata is None:
            logger.debug(f"No metadata for {key}")
            return None, EnrichmentNotFound(key)

        return metadata, None
