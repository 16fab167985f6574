"""
Pytest configuration and fixtures for Shelfwise tests.
"""

import sys
from pathlib import Path
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelfwise.api.main import create_app
from shelfwise.api.dependencies import (
    Settings,
    ServiceContainer,
    get_service_container,
    get_settings,
)
from shelfwise.identification.metadata_cleaning import authors_match, normalize_isbn
from shelfwise.identification.metadata_enricher import BookMetadata, MetadataEnricher
from shelfwise.importing.service import ImportService
from shelfwise.storage import BookRepository


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url="sqlite:///:memory:",
        database_echo=False,
        enrichment_timeout_seconds=1.0,
        enrichment_concurrency=4,
        environment="test",
        debug=True,
    )


# =============================================================================
# Metadata Fixtures
# =============================================================================

@pytest.fixture
def dune_metadata() -> BookMetadata:
    return BookMetadata(
        title="Dune",
        authors=["Frank Herbert"],
        isbn_13="9780441013593",
        isbn_10="0441013597",
        page_count=896,
        genre="Science Fiction",
        synopsis="Set on the desert planet Arrakis.",
        tags=["Science Fiction", "Classics"],
        series_name="Dune",
        series_position=1.0,
        source="openlibrary",
    )


@pytest.fixture
def hobbit_metadata() -> BookMetadata:
    return BookMetadata(
        title="The Hobbit",
        authors=["J.R.R. Tolkien"],
        isbn_13="9780547928227",
        page_count=300,
        genre="Fantasy",
        tags=["Fantasy"],
        source="google_books",
    )


@pytest.fixture
def metadata_catalog(dune_metadata, hobbit_metadata) -> list[BookMetadata]:
    """Books the fake metadata source knows about."""
    return [dune_metadata, hobbit_metadata]


@pytest.fixture
def fake_enricher(metadata_catalog) -> AsyncMock:
    """
    Metadata enricher backed by an in-memory catalog.

    Unknown ISBNs and title/author pairs resolve to None, like the real client.
    """
    enricher = AsyncMock(spec=MetadataEnricher)

    def by_isbn(isbn: str) -> Optional[BookMetadata]:
        isbn = normalize_isbn(isbn)
        for metadata in metadata_catalog:
            if isbn in (metadata.isbn_13, metadata.isbn_10):
                return metadata
        return None

    def by_title_author(title: str, author: str) -> Optional[BookMetadata]:
        for metadata in metadata_catalog:
            if metadata.title.lower() == title.lower() and authors_match(author, metadata.author):
                return metadata
        return None

    enricher.lookup_by_isbn.side_effect = by_isbn
    enricher.lookup_by_title_author.side_effect = by_title_author
    return enricher


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def repository() -> BookRepository:
    """Fresh in-memory repository."""
    return BookRepository("sqlite:///:memory:")


@pytest.fixture
def import_service(repository, fake_enricher) -> ImportService:
    return ImportService(
        repository,
        fake_enricher,
        enrichment_timeout=1.0,
        enrichment_concurrency=4,
    )


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def service_container(repository, fake_enricher) -> ServiceContainer:
    """Container wired to the test repository and fake enricher."""
    container = ServiceContainer(get_test_settings())
    container._book_repository = repository
    container._metadata_enricher = fake_enricher
    return container


@pytest_asyncio.fixture(scope="function")
async def app(service_container):
    """Create FastAPI application for testing."""
    application = create_app(get_test_settings())
    application.state.services = service_container

    # Override dependencies
    application.dependency_overrides[get_settings] = get_test_settings
    application.dependency_overrides[get_service_container] = lambda: service_container

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests, acting as USER_ID."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-ID": USER_ID},
    ) as ac:
        yield ac


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def goodreads_csv() -> str:
    """A small Goodreads library export."""
    return (
        "Book Id,Title,Author,Author l-f,ISBN,ISBN13,My Rating,Average Rating,"
        "Number of Pages,Date Read,Bookshelves,Exclusive Shelf,Owned Copies\n"
        '234225,Dune,Frank Herbert,"Herbert, Frank",="0441013597",="9780441013593",5,4.27,'
        '896,2024/03/01,"sci-fi, favorites",read,1\n'
        '5907,The Hobbit,J.R.R. Tolkien,"Tolkien, J.R.R.",="",="",4,4.29,'
        '300,,,to-read,0\n'
        '99999,Unknown Rare Book,X,"X",="",="",0,0,'
        ',03/15/2023,,read,0\n'
    )
