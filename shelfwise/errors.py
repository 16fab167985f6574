"""
Base exception types for Shelfwise.

Every error that should reach an API client as a structured response derives
from ShelfwiseException. The HTTP layer translates the code and status_code
into a JSON body (see shelfwise.api.middleware.error_handler).
"""


class ShelfwiseException(Exception):
    """Base exception for Shelfwise errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

