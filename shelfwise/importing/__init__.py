"""
Book Import Module

Two-phase import of read or owned books:
- Extraction and column resolution (JSON, CSV, XLSX, XLS)
- Normalization to a canonical entry shape
- Classification against stored books, with metadata enrichment
- Review session holding the user's choices
- Commit of the chosen creates and updates
"""

from shelfwise.importing.errors import (
    RejectionReason,
    ImportPipelineError,
    UnsupportedFormatError,
    MalformedFileError,
    EnrichmentNotFound,
    EnrichmentTimeout,
    RowRejected,
    CommitConflict,
)
from shelfwise.importing.extractor import extract_rows, format_from_filename
from shelfwise.importing.columns import COLUMN_SYNONYMS, resolve_columns, is_goodreads_export
from shelfwise.importing.normalizer import NormalizedBookEntry, normalize_row
from shelfwise.importing.classifier import (
    Bucket,
    ClassifiedItem,
    ClassificationResult,
    Classifier,
    InvalidRow,
)
from shelfwise.importing.session import (
    ReviewSession,
    ToggleItem,
    SetItem,
    SelectAll,
    ImportDecisionSet,
    LibraryUpdateRequest,
    reduce,
)
from shelfwise.importing.commit import CommitEngine, CommitResult
from shelfwise.importing.skipped import SkippedRow, collect_skipped_rows, render_skipped_csv
from shelfwise.importing.service import ImportService

__all__ = [
    # Errors
    "RejectionReason",
    "ImportPipelineError",
    "UnsupportedFormatError",
    "MalformedFileError",
    "EnrichmentNotFound",
    "EnrichmentTimeout",
    "RowRejected",
    "CommitConflict",
    # Extraction
    "extract_rows",
    "format_from_filename",
    "COLUMN_SYNONYMS",
    "resolve_columns",
    "is_goodreads_export",
    # Normalization
    "NormalizedBookEntry",
    "normalize_row",
    # Classification
    "Bucket",
    "ClassifiedItem",
    "ClassificationResult",
    "Classifier",
    "InvalidRow",
    # Review
    "ReviewSession",
    "ToggleItem",
    "SetItem",
    "SelectAll",
    "ImportDecisionSet",
    "LibraryUpdateRequest",
    "reduce",
    # Commit
    "CommitEngine",
    "CommitResult",
    # Export
    "SkippedRow",
    "collect_skipped_rows",
    "render_skipped_csv",
    # Service
    "ImportService",
]
