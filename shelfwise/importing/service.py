"""
Import Service

Orchestrates the two phases of an import:

1. parse: extract -> normalize -> classify, returning a ClassificationResult
2. confirm: commit an ImportDecisionSet, returning a CommitResult

Nothing is kept between the two calls; the caller round-trips the decisions.
"""

from typing import Union

from loguru import logger

from shelfwise.identification.metadata_enricher import MetadataEnricher
from shelfwise.importing.classifier import ClassificationResult, Classifier, InvalidRow
from shelfwise.importing.columns import is_goodreads_export, resolve_columns
from shelfwise.importing.commit import CommitEngine, CommitResult
from shelfwise.importing.errors import RowRejected
from shelfwise.importing.extractor import extract_rows
from shelfwise.importing.normalizer import normalize_row
from shelfwise.importing.session import ImportDecisionSet
from shelfwise.storage import BookRepository, RecordKind

READ_SHELF = "read"


class ImportService:
    """
    Book import pipeline for one deployment.

    Usage:
        service = ImportService(repository, enricher)
        result = await service.parse("user-1", csv_text, "csv")
        session = ReviewSession.start(result)
        commit = service.confirm("user-1", session.decisions())
    """

    def __init__(
        self,
        repository: BookRepository,
        enricher: MetadataEnricher,
        enrichment_timeout: float = 10.0,
        enrichment_concurrency: int = 5,
    ):
        self.repository = repository
        self.enricher = enricher
        self.classifier = Classifier(
            repository,
            enricher,
            timeout=enrichment_timeout,
            max_concurrency=enrichment_concurrency,
        )
        self.commit_engine = CommitEngine(repository)

    async def parse(
        self,
        user_id: str,
        data: Union[bytes, str],
        format: str,
        target: RecordKind = RecordKind.COMPLETED,
    ) -> ClassificationResult:
        """
        Parse and classify an uploaded file.

        Args:
            user_id: Importing user
            data: File content
            format: json, csv, xlsx or xls
            target: Record kind the books are imported as

        Returns:
            ClassificationResult

        Raises:
            UnsupportedFormatError: Unknown format
            MalformedFileError: File cannot be read
        """
        rows = extract_rows(data, format)

        headers: list = []
        for row in rows:
            for key in row:
                if key not in headers:
                    headers.append(key)

        columns = resolve_columns(headers)
        goodreads = is_goodreads_export(headers)
        if goodreads:
            logger.info("Detected Goodreads export")

        result = ClassificationResult(target=target)
        entries = []

        for row_number, row in enumerate(rows, start=1):
            try:
                entry = normalize_row(row, row_number, columns)
            except RowRejected as e:
                result.invalid.append(InvalidRow(
                    row_number=e.row_number,
                    reason=e.reason,
                    original=row,
                    detail=e.detail,
                ))
                continue

            # Goodreads lists to-read and currently-reading books too
            if (
                goodreads
                and target == RecordKind.COMPLETED
                and entry.shelf
                and entry.shelf.lower() != READ_SHELF
            ):
                result.skipped_shelves += 1
                continue

            entries.append(entry)

        result.items = await self.classifier.classify(user_id, entries, target)

        logger.info(
            f"Parsed {len(rows)} rows for user {user_id}: {result.counts()}, "
            f"skipped_shelves={result.skipped_shelves}"
        )
        return result

    def confirm(self, user_id: str, decisions: ImportDecisionSet) -> CommitResult:
        """Commit the user's decisions."""
        return self.commit_engine.commit(user_id, decisions)
