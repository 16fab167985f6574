"""
Shelfwise - FastAPI Backend.

HTTP surface for the book import pipeline.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_service_container,
    get_current_user_id,
    ServiceContainer,
)
from .schemas import (
    BookEntry,
    ParseRequest,
    ParseResponse,
    ConfirmRequest,
    ConfirmResponse,
    SkippedExportRequest,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_service_container",
    "get_current_user_id",
    "ServiceContainer",
    # Schemas
    "BookEntry",
    "ParseRequest",
    "ParseResponse",
    "ConfirmRequest",
    "ConfirmResponse",
    "SkippedExportRequest",
    "HealthResponse",
    "ErrorResponse",
]
