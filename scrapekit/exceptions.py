"""Custom exception classes for scrapekit"""

from typing import Optional


class ScraperError(Exception):
    """Base exception for scrapekit errors"""

    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        # Attempt context of the last attempt, filled in by the engine
        self.request_number: Optional[int] = None
        self.attempt: Optional[int] = None


class TransportError(ScraperError):
    """Raised when the request never produced a response (connection, DNS, TLS, timeout)"""

    retryable = True


class HTTPStatusError(ScraperError):
    """Raised when a response arrived with a non-2xx status code

    The response (headers and body) is kept for inspection.
    """

    retryable = True

    def __init__(self, message: str, response=None):
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class CancellationError(ScraperError):
    """Raised when the request context was canceled or its deadline passed"""

    def __init__(self, reason: str = "context canceled", deadline_exceeded: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.deadline_exceeded = deadline_exceeded


class HandlerConflictError(ScraperError):
    """Raised when the client's error handler is already running for another request"""

    def __init__(self, message: str = "error is already being handled by another request"):
        super().__init__(message)


class HandlerFailure(ScraperError):
    """Raised when the caller's error handler itself failed

    The message combines the original attempt error with the handler's error.
    """

    def __init__(self, original: Exception, handler_error: Exception):
        super().__init__(f"{original}, {handler_error}")
        self.original = original
        self.handler_error = handler_error


class DecodeError(ScraperError):
    """Raised when a response body is not valid structured data"""

    pass


class ParseError(ScraperError):
    """Raised when a response body cannot be parsed into a document"""

    pass


class DumpWriteError(ScraperError):
    """A diagnostic trace could not be written. Logged, never raised to callers."""

    pass


class StorageError(ScraperError):
    """Raised when a downloaded file cannot be stored"""

    pass


class MailError(ScraperError):
    """Raised when a mail message cannot be assembled"""

    pass
