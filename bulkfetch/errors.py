"""
Exception taxonomy for bulk fetch orchestration and scraping.
"""

from __future__ import annotations

_TRANSIENT_CLIENT_STATUS_CODES = frozenset({408, 429})


class BulkFetchError(Exception):
    """Base exception for bulk fetch failures."""


class ValidationError(BulkFetchError):
    """Raised when a job request is malformed. Never retried."""


class NotFoundError(BulkFetchError):
    """Raised when a referenced job or brand does not exist."""


class ForbiddenError(BulkFetchError):
    """Raised when a caller operates on a job owned by someone else."""


class InvalidStateError(BulkFetchError):
    """Raised when a job cannot make the requested transition."""


class ScrapeError(BulkFetchError):
    """Base exception for fetch and markup failures."""


class NetworkError(ScrapeError):
    """Raised when the target site cannot be reached."""


class FetchTimeoutError(NetworkError):
    """Raised when a single page fetch exceeds its timeout."""


class HttpStatusError(ScrapeError):
    """
    Raised for non-success HTTP responses.
    """

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} for {url}")

    @property
    def is_permanent(self) -> bool:
        return 400 <= self.status_code < 500 and self.status_code not in _TRANSIENT_CLIENT_STATUS_CODES


class ParseError(ScrapeError):
    """Raised when markup does not match the expected shape."""


class TaskTimeoutError(BulkFetchError):
    """Raised when a whole brand task exceeds its hard ceiling."""


class RetryExhaustedError(BulkFetchError):
    """
    Raised when a retry policy gives up.

    Attributes:
        attempts: Total number of attempts made.
        last_error: The error raised by the final attempt.
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempt(s): {last_error}")


def is_retryable(exc: BaseException) -> bool:
    """
    Return whether another attempt could plausibly succeed.
    """

    if isinstance(exc, (ValidationError, NotFoundError, ForbiddenError, InvalidStateError)):
        return False
    if isinstance(exc, HttpStatusError):
        return not exc.is_permanent
    return True


def error_kind(exc: BaseException) -> str:
    """
    Map an exception to the short kind recorded on job error records.
    """

    if isinstance(exc, RetryExhaustedError):
        return error_kind(exc.last_error)
    if isinstance(exc, (TaskTimeoutError, FetchTimeoutError)):
        return "timeout"
    if isinstance(exc, NetworkError):
        return "network"
    if isinstance(exc, HttpStatusError):
        return "http_status"
    if isinstance(exc, ParseError):
        return "parse"
    if isinstance(exc, NotFoundError):
        return "not_found"
    return "unknown"
