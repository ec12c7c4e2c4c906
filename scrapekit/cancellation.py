"""Cooperative cancellation for logical requests.

A :class:`RequestContext` travels with one logical request. It is checked
before every attempt, raced against every in-flight send and used for the
backoff wait, so canceling it (or letting its deadline pass) stops the
request at the next suspension point. Native ``asyncio`` task cancellation
keeps working alongside it and always propagates untouched.
"""

import asyncio
import time
from typing import Awaitable, Optional, TypeVar

from .exceptions import CancellationError

T = TypeVar("T")

DEADLINE_EXCEEDED = "context deadline exceeded"


class RequestContext:
    """Cancellation token with an optional deadline.

    Examples:
        >>> ctx = RequestContext(timeout=30)
        >>> # From another task
        >>> ctx.cancel()
    """

    def __init__(self, timeout: Optional[float] = None, deadline: Optional[float] = None):
        """
        Args:
            timeout: Seconds from now until the context expires
            deadline: Absolute ``time.monotonic()`` value at which it expires
        """
        if timeout is not None:
            expires = time.monotonic() + timeout
            deadline = expires if deadline is None else min(deadline, expires)
        self.deadline = deadline
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "context canceled") -> None:
        """Signal cancellation; the first reason wins"""
        if self._reason is None:
            self._reason = reason
        self._event.set()

    def _check_deadline(self) -> None:
        if self._reason is None and self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel(DEADLINE_EXCEEDED)

    @property
    def cancelled(self) -> bool:
        self._check_deadline()
        return self._reason is not None

    @property
    def reason(self) -> Optional[str]:
        self._check_deadline()
        return self._reason

    @property
    def deadline_exceeded(self) -> bool:
        return self.reason == DEADLINE_EXCEEDED

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None without one"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def error(self) -> CancellationError:
        return CancellationError(self.reason or "context canceled", self.deadline_exceeded)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise self.error()

    async def sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds unless the context is canceled first"""
        self.raise_if_cancelled()

        timeout = delay
        remaining = self.remaining()
        hits_deadline = remaining is not None and remaining <= delay
        if hits_deadline:
            timeout = remaining

        if timeout > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout)
            except asyncio.TimeoutError:
                pass

        if hits_deadline:
            self.cancel(DEADLINE_EXCEEDED)
        self.raise_if_cancelled()

    async def run(self, aw: Awaitable[T]) -> T:
        """Await ``aw``, abandoning it if the context is canceled first"""
        self.raise_if_cancelled()

        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        if waiter not in done:
            # Timed out on the deadline
            self.cancel(DEADLINE_EXCEEDED)
        raise self.error()
