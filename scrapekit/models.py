"""Data models and enums for scrapekit"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from curl_cffi.requests import Headers

from .cancellation import RequestContext

if TYPE_CHECKING:
    from .client import Client


class RequestState(Enum):
    """States of one logical request"""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"  # Waiting out the backoff before the next attempt
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    CANCELED = "canceled"


class HandlerState(Enum):
    """States of a client's error-handling section"""

    IDLE = "idle"
    HANDLING = "handling"  # A caller error handler is running


class ErrorType(Enum):
    """Error categories used when reporting failed attempts"""

    TRANSIENT = "transient"  # Transport failure, retry
    HTTP_STATUS = "http_status"  # Non-2xx status, retry
    CANCELED = "canceled"  # Never retried
    CONFLICT = "conflict"  # Error handler busy
    PERMANENT = "permanent"  # Don't retry


@dataclass
class Request:
    """One outbound HTTP request, rebuilt for every attempt"""

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    context: Optional[RequestContext] = None


@dataclass
class Response:
    """A fully read HTTP response"""

    status_code: int
    reason: str = ""
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    url: str = ""

    @property
    def status(self) -> str:
        return f"{self.status_code} {self.reason}".strip()

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


@dataclass
class Success:
    response: Response


@dataclass
class Failure:
    error: Exception
    retryable: bool
    response: Optional[Response] = None


@dataclass
class Canceled:
    reason: str
    error: Exception


RequestOutcome = Union[Success, Failure, Canceled]


@dataclass
class Attempt:
    """One physical send/receive cycle within a logical request"""

    number: int
    request_number: int
    request: Request
    outcome: Optional[RequestOutcome] = None

    @property
    def response(self) -> Optional[Response]:
        if isinstance(self.outcome, (Success, Failure)):
            return self.outcome.response
        return None


@dataclass
class ErrorContext:
    """Everything a caller error handler gets to see about a failed attempt"""

    client: "Client"
    request: Request
    response: Optional[Response]
    error: Exception
    attempt: int
    context: RequestContext
