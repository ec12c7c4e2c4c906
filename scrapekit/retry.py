"""Retry policy helpers: linear backoff and error classification"""

import asyncio

from .config import BACKOFF_STEP
from .exceptions import (
    CancellationError,
    HandlerConflictError,
    HTTPStatusError,
    ScraperError,
    TransportError,
)
from .models import ErrorType


def backoff_delay(attempt: int, step: float = BACKOFF_STEP) -> float:
    """
    Delay before the attempt following ``attempt``.

    Grows linearly with the attempt number; recovery is expected to come
    from the error handler rather than from waiting longer.
    """
    return step * attempt


def classify_error(error: Exception) -> ErrorType:
    """Classify error for logging and retry decisions"""
    if isinstance(error, (CancellationError, asyncio.CancelledError)):
        return ErrorType.CANCELED
    elif isinstance(error, HandlerConflictError):
        return ErrorType.CONFLICT
    elif isinstance(error, HTTPStatusError):
        return ErrorType.HTTP_STATUS
    elif isinstance(error, TransportError):
        return ErrorType.TRANSIENT
    else:
        return ErrorType.PERMANENT


def is_retryable(error: Exception) -> bool:
    """Only transport failures and error statuses are worth another attempt"""
    return isinstance(error, ScraperError) and error.retryable
