"""Per-client guard around caller error handlers"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional

from loguru import logger

from .cancellation import RequestContext
from .config import HANDLER_WAIT_POLL
from .exceptions import HandlerConflictError
from .models import HandlerState

# Set while the current task runs inside an error handler
_inside_handler: ContextVar[bool] = ContextVar("scrapekit_inside_handler", default=False)


def inside_handler() -> bool:
    """True when called from code running under an error handler"""
    return _inside_handler.get()


class ErrorGuard:
    """
    Serializes error handling for one client.

    Only one handler invocation runs at a time. A request that hits an
    error while the guard is held gets HandlerConflictError instead of
    queueing behind it; fresh attempts wait for the guard to be released
    before sending, since the handler may be changing cookies or
    credentials under them.
    """

    def __init__(self, name: str = "default", poll_interval: float = HANDLER_WAIT_POLL):
        """
        Args:
            name: Name for logging purposes
            poll_interval: Seconds between re-checks while waiting for release
        """
        self.name = name
        self.poll_interval = poll_interval
        self.state = HandlerState.IDLE
        self.invocations = 0
        self._lock = asyncio.Lock()
        self._released = asyncio.Event()
        self._released.set()

    @property
    def active(self) -> bool:
        return self.state == HandlerState.HANDLING

    async def wait_idle(self, context: Optional[RequestContext] = None) -> None:
        """Block until no handler is running. Handler code itself never waits."""
        if inside_handler():
            return

        while self.active:
            logger.debug(f"[{self.name}] waiting for client readiness")
            try:
                if context is not None:
                    await context.run(asyncio.wait_for(self._released.wait(), self.poll_interval))
                else:
                    await asyncio.wait_for(self._released.wait(), self.poll_interval)
            except asyncio.TimeoutError:
                continue

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Run the block as the only active error handler.

        Raises:
            HandlerConflictError: another handler is already running
        """
        # No await between the check and the acquire, so this cannot race
        if self._lock.locked():
            raise HandlerConflictError(
                f"error is already being handled by another request on client '{self.name}'"
            )
        await self._lock.acquire()

        self.state = HandlerState.HANDLING
        self.invocations += 1
        self._released.clear()
        token = _inside_handler.set(True)
        logger.debug(f"[{self.name}] error handler started (#{self.invocations})")
        try:
            yield
        finally:
            _inside_handler.reset(token)
            self.state = HandlerState.IDLE
            self._released.set()
            self._lock.release()
            logger.debug(f"[{self.name}] error handler finished")
