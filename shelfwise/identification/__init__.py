"""
Book Identification Module

Resolves partial book references against external catalogues and cleans the
metadata they return.
"""

from shelfwise.identification.metadata_enricher import (
    MetadataEnricher,
    BookMetadata,
    OpenLibraryClient,
    GoogleBooksClient,
)
from shelfwise.identification.metadata_cleaning import (
    normalize_isbn,
    clean_tags,
    clean_synopsis,
    authors_match,
    parse_series_string,
)

__all__ = [
    # Metadata
    "MetadataEnricher",
    "BookMetadata",
    "OpenLibraryClient",
    "GoogleBooksClient",
    # Cleaning
    "normalize_isbn",
    "clean_tags",
    "clean_synopsis",
    "authors_match",
    "parse_series_string",
]
