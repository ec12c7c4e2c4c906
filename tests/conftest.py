import inspect
from http import HTTPStatus
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from curl_cffi.requests import Headers

from scrapekit.client import Client
from scrapekit.models import Request, Response


def reply(status: int = 200, body: bytes = b"", headers: Optional[Dict[str, str]] = None, url: str = "") -> Response:
    """Build a canned response"""
    try:
        reason = HTTPStatus(status).phrase
    except ValueError:
        reason = ""
    return Response(status_code=status, reason=reason, headers=Headers(headers or {}), body=body, url=url)


class FakeTransport:
    """
    In-memory transport.

    Replies are consumed in order and the last one repeats. A reply may be
    a Response, an exception to raise, or a (possibly async) callable that
    takes the Request. Set-Cookie headers are remembered and the cookies
    in effect for every request are recorded in ``sent_cookies``.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [reply(200)]
        self.requests: List[Request] = []
        self.sent_cookies: List[Dict[str, str]] = []
        self.cookies: Dict[str, str] = {}
        self.resets = 0
        self.closed = False

    @property
    def session(self):
        return self

    async def send(self, request: Request, timeout: Optional[float] = None) -> Response:
        self.requests.append(request)
        self.sent_cookies.append(dict(self.cookies))

        current = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if callable(current):
            current = current(request)
            if inspect.isawaitable(current):
                current = await current
        if isinstance(current, BaseException):
            raise current

        for key, value in current.headers.multi_items():
            if key.lower() != "set-cookie":
                continue
            name, _, rest = value.partition("=")
            self.cookies[name.strip()] = rest.split(";", 1)[0].strip()

        if not current.url:
            current.url = request.url
        return current

    def reset(self) -> None:
        self.cookies = {}
        self.resets += 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_client(tmp_path: Path):
    """Factory for clients on a FakeTransport with no backoff delay"""

    def factory(transport: FakeTransport, **kwargs) -> Client:
        kwargs.setdefault("backoff_step", 0)
        kwargs.setdefault("dump_dir", tmp_path / "dumps")
        return Client(transport=transport, **kwargs)

    return factory
