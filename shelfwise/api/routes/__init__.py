"""
API Routes for Shelfwise

Route modules:
- imports: Book import parse, confirm and skipped-items export
"""

from shelfwise.api.routes.imports import router as imports_router

__all__ = [
    "imports_router",
]
