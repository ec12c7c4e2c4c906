"""Storage of downloaded files with async I/O"""

import mimetypes
import re
from pathlib import Path
from typing import Union

import aiofiles
from loguru import logger

from .exceptions import StorageError

_EXTENSION_RE = re.compile(r"\.[a-zA-Z0-9]+$")


def has_extension(path: Union[str, Path]) -> bool:
    return _EXTENSION_RE.search(str(path)) is not None


def extension_for(content_type: str) -> str:
    """
    Pick a file extension for a content type.

    ``image/jpg`` is treated as ``image/jpeg``. When the subtype itself is a
    registered extension of the type it is preferred, so ``image/jpeg``
    gives ``.jpeg``.

    Raises:
        StorageError: no extension is known for the type
    """
    ctype = content_type.split(";", 1)[0].strip().lower()
    ctype = ctype.replace("/jpg", "/jpeg")

    extensions = mimetypes.guess_all_extensions(ctype) if ctype else []
    if not extensions:
        raise StorageError(f"unable to determine file extension for content type {content_type!r}")

    subtype_ext = "." + ctype.rsplit("/", 1)[-1]
    if subtype_ext in extensions:
        return subtype_ext
    return extensions[0]


async def save_file(path: Union[str, Path], body: bytes, content_type: str = "") -> Path:
    """
    Store a downloaded body on disk.

    Args:
        path: Destination; an extension is added from ``content_type`` if it has none
        body: File contents
        content_type: Response Content-Type header

    Returns:
        Absolute path of the written file
    """
    path = Path(path).absolute()
    if not has_extension(path):
        path = path.with_name(path.name + extension_for(content_type))

    try:
        async with aiofiles.open(path, "wb") as f:
            await f.write(body)
    except OSError as e:
        raise StorageError(f"error creating file {path}: {e}") from e

    logger.debug(f"💾 Saved file: {path} ({len(body)/1024:.1f}KB)")
    return path
