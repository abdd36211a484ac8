"""Exception types raised (or recorded) by crawlmd.

Every public error derives from :class:`CrawlmdError` so callers can catch the
whole family with one ``except`` clause.
"""

from __future__ import annotations


class CrawlmdError(RuntimeError):
    """Base class for all crawlmd errors."""


class FetchError(CrawlmdError):
    """Raised when a URL cannot be fetched.

    Attributes:
        url    -- the URL that failed
        status -- HTTP status code (0 if no response was received)
        reason -- HTTP reason phrase or transport failure description
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        status: int = 0,
        reason: str = "",
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.reason = reason


class ExtractionError(CrawlmdError):
    """Raised when no readable article could be isolated from a page."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class ConversionFault(CrawlmdError):
    """An internal defect hit while walking or serializing a tree.

    Never raised to callers of :func:`crawlmd.html_to_markdown`; it is recorded
    on :class:`~crawlmd.extractors.markdown.ConversionResult` instead.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
