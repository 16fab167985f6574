"""
Import pipeline errors.

Fatal (abort the parse before any classification):
- UnsupportedFormatError
- MalformedFileError

Non-fatal (collected per item, never abort the batch):
- EnrichmentTimeout / EnrichmentNotFound -> item becomes NotFound
- RowRejected -> reported in the "invalid" list
- CommitConflict -> reported in CommitResult.notes
"""

from enum import Enum
from typing import Optional

from shelfwise.errors import ShelfwiseException


class RejectionReason(str, Enum):
    """Why a row never reached classification."""
    MISSING_TITLE_AND_ISBN = "MissingTitleAndIsbn"
    UNPARSABLE_ROW = "UnparsableRow"


class ImportPipelineError(ShelfwiseException):
    """Base class for import pipeline errors."""


class UnsupportedFormatError(ImportPipelineError):
    """Declared format or file extension is not one we can read."""

    def __init__(self, format: Optional[str]):
        self.format = format
        super().__init__(
            message=f"Unsupported format: {format!r}. Use json, csv, xlsx, or xls",
            code="UNSUPPORTED_FORMAT",
            status_code=415,
        )


class MalformedFileError(ImportPipelineError):
    """File could not be parsed structurally."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="MALFORMED_FILE",
            status_code=400,
            detail=detail,
        )


class EnrichmentNotFound(ImportPipelineError):
    """Metadata source has no record for the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            message=f"No metadata found for {key}",
            code="ENRICHMENT_NOT_FOUND",
            status_code=404,
        )


class EnrichmentTimeout(ImportPipelineError):
    """Metadata lookup did not answer within the configured timeout."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(
            message=f"Metadata lookup for {key} timed out after {timeout:.1f}s",
            code="ENRICHMENT_TIMEOUT",
            status_code=504,
        )


class RowRejected(ImportPipelineError):
    """A single input row failed normalization."""

    def __init__(self, reason: RejectionReason, row_number: int, detail: str = None):
        self.reason = reason
        self.row_number = row_number
        super().__init__(
            message=f"Row {row_number} rejected: {reason.value}",
            code="ROW_REJECTED",
            status_code=422,
            detail=detail,
        )


class CommitConflict(ImportPipelineError):
    """A write collided with an existing record (usually a unique constraint)."""

    def __init__(self, title: str, detail: str = None):
        self.title = title
        super().__init__(
            message=f'Could not import "{title}": conflicts with an existing record',
            code="COMMIT_CONFLICT",
            status_code=409,
            detail=detail,
        )
