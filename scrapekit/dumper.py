"""HTTP transaction dumps for offline debugging"""

from pathlib import Path
from typing import Optional

import aiofiles
from curl_cffi.requests import Headers
from loguru import logger

from .config import DUMP_SEPARATOR, EMPTY_BODY_MARKER
from .exceptions import DumpWriteError
from .models import Request, Response


class TransactionDumper:
    """
    Writes one plain-text trace file per attempt.

    File layout:
        METHOD URL
        <blank>
        request headers
        <blank>
        request body or EMPTY BODY
        <blank>
        ---
        <blank>
        response headers
        <blank>
        response body or EMPTY BODY
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, request_number: int, attempt: int) -> Path:
        return self.directory / f"{request_number:04d}-{attempt:02d}.txt"

    @staticmethod
    def _render_headers(headers: Optional[Headers]) -> bytes:
        if not headers:
            return b""
        return "".join(f"{k}: {v}\n" for k, v in headers.multi_items()).encode("utf-8")

    @staticmethod
    def _render_body(body: Optional[bytes]) -> bytes:
        return body if body else EMPTY_BODY_MARKER.encode("ascii")

    @classmethod
    def render(
        cls,
        request: Request,
        response: Optional[Response],
        request_body: Optional[bytes],
        response_body: Optional[bytes],
    ) -> bytes:
        """Render a transaction in the trace file format"""
        parts = [
            f"{request.method} {request.url}\n\n".encode("utf-8"),
            cls._render_headers(request.headers),
            b"\n",
            cls._render_body(request_body),
            b"\n",
            f"\n{DUMP_SEPARATOR}\n\n".encode("ascii"),
            cls._render_headers(response.headers if response is not None else None),
            b"\n",
            cls._render_body(response_body),
        ]
        return b"".join(parts)

    async def dump(
        self,
        request: Request,
        response: Optional[Response],
        request_body: Optional[bytes],
        response_body: Optional[bytes],
        request_number: int,
        attempt: int,
    ) -> Optional[Path]:
        """
        Write a transaction to its trace file.

        Write failures are logged and swallowed.

        Returns:
            Path to the trace file, or None if it could not be written
        """
        path = self.path_for(request_number, attempt)
        data = self.render(request, response, request_body, response_body)

        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            err = DumpWriteError(f"error writing http dump file {path}: {e}")
            logger.error(f"💥 {err}")
            return None

        logger.debug(f"💾 Dumped transaction: {path.name} ({len(data)} bytes)")
        return path
