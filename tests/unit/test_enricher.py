"""
Unit tests for metadata enrichment.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from shelfwise.identification.metadata_enricher import (
    BookMetadata,
    GoogleBooksClient,
    MetadataEnricher,
    OpenLibraryClient,
)


@pytest.fixture
def openlibrary() -> AsyncMock:
    client = AsyncMock(spec=OpenLibraryClient)
    client.search_by_isbn.return_value = None
    client.search_by_title_author.return_value = []
    return client


@pytest.fixture
def google_books() -> AsyncMock:
    client = AsyncMock(spec=GoogleBooksClient)
    client.search_by_isbn.return_value = None
    client.search_by_title_author.return_value = []
    return client


@pytest.fixture
def enricher(openlibrary, google_books) -> MetadataEnricher:
    return MetadataEnricher(openlibrary=openlibrary, google_books=google_books)


class TestLookupByIsbn:
    """Tests for MetadataEnricher.lookup_by_isbn."""

    @pytest.mark.asyncio
    async def test_google_fills_missing_synopsis(self, enricher, openlibrary, google_books):
        openlibrary.search_by_isbn.return_value = BookMetadata(
            title="Dune", authors=["Frank Herbert"], isbn_13="9780441013593", page_count=896,
        )
        google_books.search_by_isbn.return_value = BookMetadata(
            title="Dune (Deluxe)", authors=["Frank Herbert"], page_count=412,
            synopsis="Set on the desert planet Arrakis.", genre="Fiction",
        )

        metadata = await enricher.lookup_by_isbn("978-0-441-01359-3")

        assert metadata.title == "Dune"
        assert metadata.page_count == 896
        assert metadata.synopsis == "Set on the desert planet Arrakis."
        assert metadata.genre == "Fiction"
        openlibrary.search_by_isbn.assert_awaited_once_with("9780441013593")

    @pytest.mark.asyncio
    async def test_google_skipped_when_openlibrary_complete(self, enricher, openlibrary, google_books):
        openlibrary.search_by_isbn.return_value = BookMetadata(
            title="Dune", isbn_13="9780441013593", synopsis="Spice.",
        )

        await enricher.lookup_by_isbn("9780441013593")

        google_books.search_by_isbn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_isbn_is_none(self, enricher):
        assert await enricher.lookup_by_isbn("9999999999999") is None

    @pytest.mark.asyncio
    async def test_blank_isbn_skips_lookup(self, enricher, openlibrary):
        assert await enricher.lookup_by_isbn("  ") is None

        openlibrary.search_by_isbn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requested_isbn_fills_missing_identifier(self, enricher, google_books):
        google_books.search_by_isbn.return_value = BookMetadata(title="Dune")

        metadata = await enricher.lookup_by_isbn("0441013597")

        assert metadata.isbn_10 == "0441013597"
        assert metadata.isbn_13 is None

    @pytest.mark.asyncio
    async def test_results_are_cached(self, enricher, openlibrary):
        openlibrary.search_by_isbn.return_value = BookMetadata(
            title="Dune", isbn_13="9780441013593", synopsis="Spice.",
        )

        first = await enricher.lookup_by_isbn("9780441013593")
        second = await enricher.lookup_by_isbn("9780441013593")

        assert first == second
        openlibrary.search_by_isbn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_persists_to_disk(self, tmp_path, openlibrary, google_books):
        cache_path = tmp_path / "cache" / "metadata.json"
        openlibrary.search_by_isbn.return_value = BookMetadata(
            title="Dune", authors=["Frank Herbert"], isbn_13="9780441013593", synopsis="Spice.",
        )

        first = MetadataEnricher(cache_path=cache_path, openlibrary=openlibrary, google_books=google_books)
        await first.lookup_by_isbn("9780441013593")

        fresh_openlibrary = AsyncMock(spec=OpenLibraryClient)
        second = MetadataEnricher(
            cache_path=cache_path, openlibrary=fresh_openlibrary, google_books=google_books,
        )
        metadata = await second.lookup_by_isbn("9780441013593")

        assert cache_path.exists()
        assert metadata.title == "Dune"
        assert metadata.authors == ["Frank Herbert"]
        fresh_openlibrary.search_by_isbn.assert_not_awaited()

    def test_corrupt_cache_is_ignored(self, tmp_path, openlibrary, google_books):
        cache_path = tmp_path / "metadata.json"
        cache_path.write_text("{not json")

        enricher = MetadataEnricher(cache_path=cache_path, openlibrary=openlibrary, google_books=google_books)

        assert enricher._cache == {}


class TestLookupByTitleAuthor:
    """Tests for MetadataEnricher.lookup_by_title_author."""

    @pytest.mark.asyncio
    async def test_discards_other_authors(self, enricher, openlibrary):
        openlibrary.search_by_title_author.return_value = [
            BookMetadata(title="Emma", authors=["Someone Else"]),
            BookMetadata(title="Emma", authors=["Jane Austen"], page_count=474),
        ]

        metadata = await enricher.lookup_by_title_author("Emma", "Austen")

        assert metadata.authors == ["Jane Austen"]
        assert metadata.page_count == 474

    @pytest.mark.asyncio
    async def test_no_author_match_is_none(self, enricher, openlibrary):
        openlibrary.search_by_title_author.return_value = [
            BookMetadata(title="Emma", authors=["Someone Else"]),
        ]

        assert await enricher.lookup_by_title_author("Emma", "Jane Austen") is None

    @pytest.mark.asyncio
    async def test_prefers_full_isbn_record(self, enricher, openlibrary):
        openlibrary.search_by_title_author.return_value = [
            BookMetadata(title="Dune", authors=["Frank Herbert"], isbn_13="9780441013593"),
        ]
        openlibrary.search_by_isbn.return_value = BookMetadata(
            title="Dune", authors=["Frank Herbert"], isbn_13="9780441013593",
            page_count=896, synopsis="Spice.",
        )

        metadata = await enricher.lookup_by_title_author("Dune", "Frank Herbert")

        assert metadata.page_count == 896
        assert metadata.synopsis == "Spice."
        openlibrary.search_by_isbn.assert_awaited_once_with("9780441013593")

    @pytest.mark.asyncio
    async def test_requires_both_fields(self, enricher, openlibrary):
        assert await enricher.lookup_by_title_author("Dune", "") is None

        openlibrary.search_by_title_author.assert_not_awaited()


class TestClients:
    """Response parsing through a mocked transport."""

    @pytest.mark.asyncio
    async def test_openlibrary_isbn_payload(self):
        payload = {
            "ISBN:9780441013593": {
                "title": "Dune",
                "key": "/books/OL1M",
                "authors": [{"name": "Frank Herbert"}],
                "identifiers": {"isbn_10": ["0441013597"], "isbn_13": ["9780441013593"]},
                "publishers": [{"name": "Ace"}],
                "number_of_pages": 896,
                "subjects": [{"name": "Science Fiction"}, {"name": "series:Dune"}],
                "notes": {"value": "Set on Arrakis."},
            }
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["bibkeys"] == "ISBN:9780441013593"
            return httpx.Response(200, json=payload)

        client = OpenLibraryClient()
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        metadata = await client.search_by_isbn("9780441013593")
        await client.close()

        assert metadata.title == "Dune"
        assert metadata.authors == ["Frank Herbert"]
        assert metadata.isbn_10 == "0441013597"
        assert metadata.isbn_13 == "9780441013593"
        assert metadata.publisher == "Ace"
        assert metadata.page_count == 896
        assert metadata.series_name == "Dune"
        assert metadata.synopsis == "Set on Arrakis."
        assert metadata.open_library_id == "OL1M"

    @pytest.mark.asyncio
    async def test_openlibrary_http_error_is_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client = OpenLibraryClient()
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        assert await client.search_by_isbn("9780441013593") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_google_volume_series_from_subtitle(self):
        payload = {
            "items": [
                {
                    "id": "abc123",
                    "volumeInfo": {
                        "title": "Catching Fire",
                        "subtitle": "The Hunger Games, Book 2",
                        "authors": ["Suzanne Collins"],
                        "industryIdentifiers": [
                            {"type": "ISBN_13", "identifier": "9780439023498"},
                        ],
                        "pageCount": 391,
                        "categories": ["Young Adult Fiction"],
                        "description": "Sparks are igniting.",
                    },
                }
            ]
        }

        client = GoogleBooksClient(api_key="key")
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        )

        metadata = await client.search_by_isbn("9780439023498")
        await client.close()

        assert metadata.series_name == "The Hunger Games"
        assert metadata.series_position == 2.0
        assert metadata.google_books_id == "abc123"
        assert metadata.genre == "Young Adult Fiction"
        assert metadata.synopsis == "Sparks are igniting."

    @pytest.mark.asyncio
    async def test_non_json_reply_is_a_miss(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        openlibrary = OpenLibraryClient()
        openlibrary._client = httpx.AsyncClient(transport=transport)
        google = GoogleBooksClient(api_key="key")
        google._client = httpx.AsyncClient(transport=transport)

        assert await openlibrary.search_by_isbn("9780441013593") is None
        assert await openlibrary.search_by_title_author("Dune", "Frank Herbert") == []
        assert await google.search_by_isbn("9780441013593") is None
        assert await google.search_by_title_author("Dune", "Frank Herbert") == []

        await openlibrary.close()
        await google.close()
