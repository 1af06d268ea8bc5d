"""PingOne-specific exceptions for error handling."""
from __future__ import annotations
from typing import Optional


class PingOneError(Exception):
    """Base exception for all PingOne operations."""
    pass


class ConfigurationError(PingOneError, ValueError):
    """Connection configuration is incomplete or malformed."""
    pass


class PaginationAbortError(PingOneError):
    """A page request failed while walking a paginated listing.

    Records fetched before the failing page are discarded; the caller decides
    whether to retry the whole import or give up.

    Attributes:
        status_code: HTTP status code (None for transport failures)
        kind: Resource being listed ("users" or "groups")
        url: Page URL that failed
    """

    def __init__(self, message: str, status_code: Optional[int] = None, kind: str = "", url: str = ""):
        self.status_code = status_code
        self.kind = kind
        self.url = url
        super().__init__(message)


class PaginationDeadlineExceeded(PaginationAbortError):
    """The overall pagination deadline expired before the listing completed."""
    pass
