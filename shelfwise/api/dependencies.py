"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Service instances (repository, metadata enricher, import service)
- Request user identity
"""

import os
from typing import Optional
from functools import lru_cache
from dataclasses import dataclass

from fastapi import Depends, Header

from shelfwise.errors import ShelfwiseException


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///./shelfwise.db"
    database_echo: bool = False

    # Metadata enrichment
    google_books_api_key: Optional[str] = None
    enrichment_timeout_seconds: float = 10.0
    enrichment_concurrency: int = 5
    metadata_cache_path: Optional[str] = None
    metadata_cache_ttl_days: int = 30

    # File uploads
    max_upload_size_mb: int = 10

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            google_books_api_key=os.getenv("GOOGLE_BOOKS_API_KEY"),
            enrichment_timeout_seconds=float(
                os.getenv("ENRICHMENT_TIMEOUT_SECONDS", cls.enrichment_timeout_seconds)
            ),
            enrichment_concurrency=int(os.getenv("ENRICHMENT_CONCURRENCY", cls.enrichment_concurrency)),
            metadata_cache_path=os.getenv("METADATA_CACHE_PATH") or None,
            metadata_cache_ttl_days=int(os.getenv("METADATA_CACHE_TTL_DAYS", cls.metadata_cache_ttl_days)),
            max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", cls.max_upload_size_mb)),
            environment=os.getenv("SHELFWISE_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access to avoid startup delays.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._book_repository = None
        self._metadata_enricher = None
        self._import_service = None

    @property
    def book_repository(self):
        """Get book repository instance."""
        if self._book_repository is None:
            from ..storage.book_repository import BookRepository
            self._book_repository = BookRepository(
                self.settings.database_url,
                echo=self.settings.database_echo,
            )
        return self._book_repository

    @property
    def metadata_enricher(self):
        """Get metadata enricher instance."""
        if self._metadata_enricher is None:
            from ..identification.metadata_enricher import MetadataEnricher
            self._metadata_enricher = MetadataEnricher(
                google_api_key=self.settings.google_books_api_key,
                cache_path=self.settings.metadata_cache_path,
                cache_ttl_days=self.settings.metadata_cache_ttl_days,
                timeout=self.settings.enrichment_timeout_seconds,
            )
        return self._metadata_enricher

    @property
    def import_service(self):
        """Get import service instance."""
        if self._import_service is None:
            from ..importing.service import ImportService
            self._import_service = ImportService(
                repository=self.book_repository,
                enricher=self.metadata_enricher,
                enrichment_timeout=self.settings.enrichment_timeout_seconds,
                enrichment_concurrency=self.settings.enrichment_concurrency,
            )
        return self._import_service

    async def close(self):
        """Release network clients."""
        if self._metadata_enricher is not None:
            await self._metadata_enricher.close()


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_import_service(
    container: ServiceContainer = Depends(get_service_container),
):
    """Dependency for import service."""
    return container.import_service


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> str:
    """
    Extract the acting user from the request header.

    Authentication happens upstream; this service trusts the header.

    Raises:
        ShelfwiseException: If the header is missing.
    """
    if not x_user_id or not x_user_id.strip():
        raise ShelfwiseException(
            message="User identity required",
            code="UNAUTHORIZED",
            status_code=401,
            detail="Send the acting user's ID in the X-User-ID header",
        )
    return x_user_id.strip()
