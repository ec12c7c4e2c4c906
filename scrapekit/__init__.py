"""scrapekit
Resilient async HTTP client and helpers for writing scrapers
"""

__version__ = "0.3.0"

from .cancellation import RequestContext
from .client import Client, ErrorHandler
from .dumper import TransactionDumper
from .error_guard import ErrorGuard
from .exceptions import (
    CancellationError,
    DecodeError,
    DumpWriteError,
    HandlerConflictError,
    HandlerFailure,
    HTTPStatusError,
    MailError,
    ParseError,
    ScraperError,
    StorageError,
    TransportError,
)
from .mail import Message, send_mail
from .models import ErrorContext, ErrorType, HandlerState, Request, RequestState, Response
from .transport import CurlTransport, Transport
from .utils import combine_url, csv_to_dicts, sanitize_filename, tidy_html_text

__all__ = [
    "__version__",
    "Client",
    "CurlTransport",
    "ErrorContext",
    "ErrorGuard",
    "ErrorHandler",
    "Message",
    "Request",
    "RequestContext",
    "Response",
    "TransactionDumper",
    "Transport",
    "CancellationError",
    "DecodeError",
    "DumpWriteError",
    "HandlerConflictError",
    "HandlerFailure",
    "HTTPStatusError",
    "MailError",
    "ParseError",
    "ScraperError",
    "StorageError",
    "TransportError",
    "ErrorType",
    "HandlerState",
    "RequestState",
    "combine_url",
    "csv_to_dicts",
    "sanitize_filename",
    "send_mail",
    "tidy_html_text",
]
