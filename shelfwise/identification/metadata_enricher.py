"""
Metadata Enricher

Fetches and enriches book metadata from Open Library and Google Books.
"""

import hashlib
import json
from dataclasses import dataclass, field, replace
from typing import Optional, Union
from pathlib import Path
from datetime import datetime, timedelta
import httpx
from loguru import logger

from shelfwise.identification.metadata_cleaning import (
    authors_match,
    clean_synopsis,
    clean_tags,
    normalize_isbn,
    parse_series_string,
    series_from_subjects,
)


@dataclass
class BookMetadata:
    """
    Book metadata from external sources.

    Combines data from multiple sources.
    """

    # Core identifiers
    title: str
    authors: list[str] = field(default_factory=list)
    isbn_10: Optional[str] = None
    isbn_13: Optional[str] = None

    # Publication info
    publisher: Optional[str] = None
    publish_date: Optional[str] = None

    # Content
    page_count: Optional[int] = None
    genre: Optional[str] = None
    synopsis: Optional[str] = None
    tags: list[str] = field(default_factory=list)

    # Series
    series_name: Optional[str] = None
    series_position: Optional[float] = None

    # External IDs
    open_library_id: Optional[str] = None
    google_books_id: Optional[str] = None

    # Metadata about the metadata
    source: str = "unknown"
    fetched_at: Optional[datetime] = None

    @property
    def author(self) -> Optional[str]:
        """All authors as one display string."""
        if self.authors:
            return ", ".join(self.authors)
        return None

    @property
    def primary_isbn(self) -> Optional[str]:
        """Get primary ISBN (prefer ISBN-13)."""
        return self.isbn_13 or self.isbn_10

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "authors": self.authors,
            "isbn_10": self.isbn_10,
            "isbn_13": self.isbn_13,
            "publisher": self.publisher,
            "publish_date": self.publish_date,
            "page_count": self.page_count,
            "genre": self.genre,
            "synopsis": self.synopsis,
            "tags": self.tags,
            "series_name": self.series_name,
            "series_position": self.series_position,
            "open_library_id": self.open_library_id,
            "google_books_id": self.google_books_id,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BookMetadata':
        """Create from dictionary."""
        return cls(
            title=data.get("title", "Unknown"),
            authors=data.get("authors", []),
            isbn_10=data.get("isbn_10"),
            isbn_13=data.get("isbn_13"),
            publisher=data.get("publisher"),
            publish_date=data.get("publish_date"),
            page_count=data.get("page_count"),
            genre=data.get("genre"),
            synopsis=data.get("synopsis"),
            tags=data.get("tags", []),
            series_name=data.get("series_name"),
            series_position=data.get("series_position"),
            open_library_id=data.get("open_library_id"),
            google_books_id=data.get("google_books_id"),
            source=data.get("source", "dict"),
        )


def _split_isbns(isbns) -> tuple[Optional[str], Optional[str]]:
    """Pick the first ISBN-10 and ISBN-13 out of a list."""
    isbn_10 = None
    isbn_13 = None
    for raw in isbns or []:
        isbn = normalize_isbn(raw)
        if not isbn:
            continue
        if len(isbn) == 10 and isbn_10 is None:
            isbn_10 = isbn
        elif len(isbn) == 13 and isbn_13 is None:
            isbn_13 = isbn
    return isbn_10, isbn_13


class OpenLibraryClient:
    """
    Client for Open Library API.

    Open Library is a free, open-source library catalog.
    Rate limits: Be respectful, no official limit but don't abuse.
    """

    BASE_URL = "https://openlibrary.org"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search_by_isbn(self, isbn: str) -> Optional[BookMetadata]:
        """
        Search by ISBN.

        Args:
            isbn: ISBN-10 or ISBN-13

        Returns:
            BookMetadata or None
        """
        client = await self._get_client()

        isbn = normalize_isbn(isbn)
        if not isbn:
            return None

        try:
            response = await client.get(
                f"{self.BASE_URL}/api/books",
                params={"bibkeys": f"ISBN:{isbn}", "format": "json", "jscmd": "data"},
            )

            if response.status_code != 200:
                return None

            data = response.json().get(f"ISBN:{isbn}")
            if not data:
                return None

            return self._parse_book_data(data, isbn)

        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"OpenLibrary ISBN lookup failed: {e}")
            return None

    async def search_by_title_author(
        self,
        title: str,
        author: Optional[str] = None,
        limit: int = 5,
    ) -> list[BookMetadata]:
        """
        Search by title and optionally author.

        Args:
            title: Book title
            author: Author name (optional)
            limit: Maximum results

        Returns:
            List of BookMetadata
        """
        client = await self._get_client()

        try:
            params = {
                "title": title,
                "limit": limit,
                "language": "eng",
                "fields": "key,title,author_name,isbn,publisher,number_of_pages_median,subject",
            }
            if author:
                params["author"] = author

            response = await client.get(f"{self.BASE_URL}/search.json", params=params)

            if response.status_code != 200:
                return []

            results = []
            for doc in response.json().get("docs", []):
                metadata = self._parse_search_result(doc)
                if metadata:
                    results.append(metadata)

            return results

        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"OpenLibrary search failed: {e}")
            return []

    def _parse_book_data(self, data: dict, isbn: str) -> Optional[BookMetadata]:
        """Parse the jscmd=data payload for one edition."""
        title = data.get("title")
        if not title:
            return None

        identifiers = data.get("identifiers", {})
        isbn_10, isbn_13 = _split_isbns(
            identifiers.get("isbn_13", []) + identifiers.get("isbn_10", []) + [isbn]
        )

        subjects = [
            s.get("name") if isinstance(s, dict) else s
            for s in data.get("subjects", [])
        ]
        subjects = [s for s in subjects if s]

        notes = data.get("notes")
        if isinstance(notes, dict):
            notes = notes.get("value")
        excerpts = data.get("excerpts") or []
        synopsis = notes or (excerpts[0].get("text") if excerpts else None)

        series_name = series_from_subjects(subjects)

        return BookMetadata(
            title=title,
            authors=[a.get("name") for a in data.get("authors", []) if a.get("name")],
            isbn_10=isbn_10,
            isbn_13=isbn_13,
            publisher=(data.get("publishers") or [{}])[0].get("name"),
            publish_date=data.get("publish_date"),
            page_count=data.get("number_of_pages"),
            genre=", ".join(subjects[:3]) or None,
            synopsis=clean_synopsis(synopsis) or None,
            tags=clean_tags(subjects[:10]),
            series_name=series_name,
            open_library_id=data.get("key", "").replace("/books/", "") or None,
            source="openlibrary",
            fetched_at=datetime.now(),
        )

    def _parse_search_result(self, doc: dict) -> Optional[BookMetadata]:
        """Parse search result document."""
        title = doc.get("title")
        if not title:
            return None

        isbn_10, isbn_13 = _split_isbns(doc.get("isbn", []))
        subjects = doc.get("subject", [])

        return BookMetadata(
            title=title,
            authors=doc.get("author_name", []),
            isbn_10=isbn_10,
            isbn_13=isbn_13,
            publisher=doc.get("publisher", [None])[0] if doc.get("publisher") else None,
            page_count=doc.get("number_of_pages_median"),
            genre=", ".join(subjects[:3]) or None,
            tags=clean_tags(subjects[:10]),
            series_name=series_from_subjects(subjects),
            open_library_id=doc.get("key", "").replace("/works/", "") or None,
            source="openlibrary",
            fetched_at=datetime.now(),
        )

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class GoogleBooksClient:
    """
    Client for Google Books API.

    Provides descriptions and categories.
    Rate limit: 1000 requests/day without API key.
    """

    BASE_URL = "https://www.googleapis.com/books/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

        if not self.api_key:
            logger.warning("No Google Books API key provided. Rate limits will be lower.")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search_by_isbn(self, isbn: str) -> Optional[BookMetadata]:
        """Search by ISBN."""
        results = await self._query(f"isbn:{normalize_isbn(isbn)}", limit=1)
        return results[0] if results else None

    async def search_by_title_author(
        self,
        title: str,
        author: Optional[str] = None,
        limit: int = 5,
    ) -> list[BookMetadata]:
        """Search by title and author."""
        query = f"intitle:{title}"
        if author:
            query += f"+inauthor:{author}"
        return await self._query(query, limit=limit)

    async def _query(self, query: str, limit: int) -> list[BookMetadata]:
        client = await self._get_client()

        params = {
            "q": query,
            "maxResults": min(limit, 40),
            "printType": "books",
            "langRestrict": "en",
        }
        if self.api_key:
            params["key"] = self.api_key

        try:
            response = await client.get(f"{self.BASE_URL}/volumes", params=params)

            if response.status_code != 200:
                logger.error(f"Google Books API error {response.status_code}: {response.text[:200]}")
                return []

            results = []
            for item in response.json().get("items", []):
                metadata = self._parse_volume(item)
                if metadata:
                    results.append(metadata)

            return results

        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Google Books search failed: {e}")
            return []

    def _parse_volume(self, item: dict) -> Optional[BookMetadata]:
        """Parse volume data."""
        info = item.get("volumeInfo", {})

        title = info.get("title")
        if not title:
            return None

        # ISBNs
        isbn_10 = None
        isbn_13 = None
        for identifier in info.get("industryIdentifiers", []):
            if identifier.get("type") == "ISBN_10":
                isbn_10 = identifier.get("identifier")
            elif identifier.get("type") == "ISBN_13":
                isbn_13 = identifier.get("identifier")

        # Series info usually rides in the subtitle ("The Hunger Games, Book 2")
        series_name, series_position = None, None
        if info.get("subtitle"):
            parsed_name, parsed_position = parse_series_string(info["subtitle"])
            if parsed_position is not None:
                series_name, series_position = parsed_name, parsed_position

        categories = info.get("categories", [])

        return BookMetadata(
            title=title,
            authors=info.get("authors", []),
            isbn_10=isbn_10,
            isbn_13=isbn_13,
            publisher=info.get("publisher"),
            publish_date=info.get("publishedDate"),
            page_count=info.get("pageCount"),
            genre=", ".join(categories[:3]) or None,
            synopsis=clean_synopsis(info.get("description")) or None,
            tags=clean_tags(categories),
            series_name=series_name,
            series_position=series_position,
            google_books_id=item.get("id"),
            source="google_books",
            fetched_at=datetime.now(),
        )

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class MetadataEnricher:
    """
    Unified metadata enrichment service with caching.

    Lookups are idempotent and return None when no source knows the book.
    Open Library is asked first; Google Books fills in what it lacks.
    """

    def __init__(
        self,
        google_api_key: Optional[str] = None,
        cache_path: Optional[Union[str, Path]] = None,
        cache_ttl_days: int = 30,
        timeout: float = 10.0,
        openlibrary: Optional[OpenLibraryClient] = None,
        google_books: Optional[GoogleBooksClient] = None,
    ):
        """
        Initialize metadata enricher.

        Args:
            google_api_key: Google Books API key (optional)
            cache_path: Path for cache storage
            cache_ttl_days: Cache entry TTL in days
            timeout: HTTP timeout per request, in seconds
            openlibrary: Client override (tests)
            google_books: Client override (tests)
        """
        self.openlibrary = openlibrary or OpenLibraryClient(timeout=timeout)
        self.google_books = google_books or GoogleBooksClient(api_key=google_api_key, timeout=timeout)

        self.cache_path = Path(cache_path) if cache_path else None
        self.cache_ttl = timedelta(days=cache_ttl_days)
        self._cache: dict[str, tuple[BookMetadata, datetime]] = {}

        # Load persistent cache
        if self.cache_path:
            self._load_cache()

        logger.info("MetadataEnricher initialized")

    async def lookup_by_isbn(self, isbn: str) -> Optional[BookMetadata]:
        """
        Enrich metadata by ISBN.

        Args:
            isbn: ISBN-10 or ISBN-13

        Returns:
            BookMetadata with combined information, or None
        """
        isbn = normalize_isbn(isbn)
        if not isbn:
            return None

        cache_key = f"isbn:{isbn}"
        cached = self._get_cached(cache_key)
        if cached:
            return cached

        openlibrary_result = await self.openlibrary.search_by_isbn(isbn)

        google_result = None
        if openlibrary_result is None or not openlibrary_result.synopsis:
            google_result = await self.google_books.search_by_isbn(isbn)

        metadata = self._merge_metadata(openlibrary_result, google_result)

        if metadata:
            if not metadata.primary_isbn:
                metadata = replace(metadata, isbn_13=isbn if len(isbn) == 13 else None,
                                   isbn_10=isbn if len(isbn) == 10 else None)
            self._set_cached(cache_key, metadata)

        return metadata

    async def lookup_by_title_author(
        self,
        title: str,
        author: str,
    ) -> Optional[BookMetadata]:
        """
        Enrich metadata by title and author.

        Candidates whose author does not match the requested author are
        discarded. When a candidate carries an ISBN, the full ISBN record is
        fetched and preferred.

        Args:
            title: Book title
            author: Author name

        Returns:
            Best matching BookMetadata, or None
        """
        if not title or not author:
            return None

        cache_key = f"title:{title.lower()}|author:{author.lower()}"
        cache_key = hashlib.sha256(cache_key.encode()).hexdigest()[:16]
        cached = self._get_cached(cache_key)
        if cached:
            return cached

        openlibrary_results = await self.openlibrary.search_by_title_author(title, author, limit=5)
        google_results = await self.google_books.search_by_title_author(title, author, limit=5)

        openlibrary_best = next(
            (m for m in openlibrary_results if authors_match(author, m.author)), None
        )
        google_best = next(
            (m for m in google_results if authors_match(author, m.author)), None
        )

        search_metadata = self._merge_metadata(openlibrary_best, google_best)
        if search_metadata is None:
            return None

        metadata = search_metadata
        if search_metadata.primary_isbn:
            full = await self.lookup_by_isbn(search_metadata.primary_isbn)
            if full and authors_match(author, full.author):
                metadata = self._merge_metadata(full, search_metadata)

        self._set_cached(cache_key, metadata)
        return metadata

    def _merge_metadata(
        self,
        primary: Optional[BookMetadata],
        secondary: Optional[BookMetadata],
    ) -> Optional[BookMetadata]:
        """
        Merge metadata from two sources.

        Primary source takes precedence for most fields.
        Secondary fills in missing data.
        """
        if not primary and not secondary:
            return None

        if not primary:
            return secondary

        if not secondary:
            return primary

        # Use primary as base, fill in missing from secondary
        return BookMetadata(
            title=primary.title or secondary.title,
            authors=primary.authors or secondary.authors,
            isbn_10=primary.isbn_10 or secondary.isbn_10,
            isbn_13=primary.isbn_13 or secondary.isbn_13,
            publisher=primary.publisher or secondary.publisher,
            publish_date=primary.publish_date or secondary.publish_date,
            page_count=primary.page_count or secondary.page_count,
            genre=primary.genre or secondary.genre,
            synopsis=primary.synopsis or secondary.synopsis,
            tags=primary.tags or secondary.tags,
            series_name=primary.series_name or secondary.series_name,
            series_position=(
                primary.series_position
                if primary.series_position is not None
                else secondary.series_position
            ),
            open_library_id=primary.open_library_id or secondary.open_library_id,
            google_books_id=primary.google_books_id or secondary.google_books_id,
            source="merged",
            fetched_at=datetime.now(),
        )

    def _get_cached(self, key: str) -> Optional[BookMetadata]:
        """Get from cache if not expired."""
        if key in self._cache:
            metadata, cached_at = self._cache[key]
            if datetime.now() - cached_at < self.cache_ttl:
                return metadata
            else:
                del self._cache[key]
        return None

    def _set_cached(self, key: str, metadata: BookMetadata):
        """Set cache entry."""
        self._cache[key] = (metadata, datetime.now())

        # Persist if path configured
        if self.cache_path:
            self._save_cache()

    def _load_cache(self):
        """Load cache from disk."""
        if not self.cache_path or not self.cache_path.exists():
            return

        try:
            with open(self.cache_path, "r") as f:
                data = json.load(f)

            for key, entry in data.items():
                metadata = BookMetadata.from_dict(entry["metadata"])
                cached_at = datetime.fromisoformat(entry["cached_at"])
                self._cache[key] = (metadata, cached_at)

            logger.info(f"Loaded {len(self._cache)} cached metadata entries")

        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to load metadata cache: {e}")

    def _save_cache(self):
        """Save cache to disk."""
        if not self.cache_path:
            return

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)

            data = {}
            for key, (metadata, cached_at) in self._cache.items():
                data[key] = {
                    "metadata": metadata.to_dict(),
                    "cached_at": cached_at.isoformat(),
                }

            with open(self.cache_path, "w") as f:
                json.dump(data, f)

        except OSError as e:
            logger.warning(f"Failed to save metadata cache: {e}")

    async def close(self):
        """Close all clients."""
        await self.openlibrary.close()
        await self.google_books.close()
