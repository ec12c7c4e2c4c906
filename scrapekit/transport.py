"""HTTP transport backed by curl_cffi"""

import asyncio
from typing import Optional, Protocol, runtime_checkable

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession, Headers
from loguru import logger

from .config import DEFAULT_IMPERSONATE, DEFAULT_REQUEST_TIMEOUT
from .exceptions import TransportError
from .models import Request, Response


@runtime_checkable
class Transport(Protocol):
    """Sends one request and returns one fully read response"""

    async def send(self, request: Request, timeout: Optional[float] = None) -> Response:
        """Raise TransportError when no response was received"""
        ...

    def reset(self) -> None:
        """Drop every accumulated cookie"""
        ...

    async def close(self) -> None:
        ...


class CurlTransport:
    """
    Transport on top of a shared curl_cffi AsyncSession.

    - Browser TLS fingerprint via ``impersonate``
    - Optional proxy for every request
    - Session cookie jar shared by all requests until reset
    - HTTP error statuses are returned, never raised
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        impersonate: str = DEFAULT_IMPERSONATE,
    ):
        self.proxy_url = proxy_url
        self.timeout = timeout
        self.impersonate = impersonate
        self._session: Optional[AsyncSession] = None

    @property
    def session(self) -> AsyncSession:
        """The underlying session, created on first use"""
        if self._session is None:
            kwargs = {"impersonate": self.impersonate, "timeout": self.timeout}
            if self.proxy_url:
                kwargs["proxy"] = self.proxy_url
            self._session = AsyncSession(**kwargs)
            logger.debug(
                f"curl_cffi session created (impersonate: {self.impersonate}, "
                f"proxy: {self.proxy_url or 'none'})"
            )
        return self._session

    async def send(self, request: Request, timeout: Optional[float] = None) -> Response:
        try:
            rsp = await self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body or None,
                timeout=timeout or self.timeout,
                allow_redirects=True,
            )
        except CurlError as e:
            raise TransportError(str(e)) from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"timeout: {request.method} {request.url}") from e

        return Response(
            status_code=rsp.status_code,
            reason=rsp.reason or "",
            headers=Headers(rsp.headers.multi_items()),
            body=rsp.content or b"",
            url=str(rsp.url),
        )

    def reset(self) -> None:
        if self._session is not None:
            self._session.cookies.clear()
            logger.debug("Session cookies cleared")

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
