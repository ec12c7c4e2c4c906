from pathlib import Path

import pytest

from scrapekit.exceptions import StorageError
from scrapekit.storage import extension_for, has_extension, save_file


@pytest.mark.parametrize(
    "content_type, expected",
    [
        ("image/jpeg", ".jpeg"),
        ("image/jpg", ".jpeg"),
        ("IMAGE/JPG", ".jpeg"),
        ("image/png", ".png"),
        ("application/json; charset=utf-8", ".json"),
        ("application/pdf", ".pdf"),
    ],
)
def test_extension_for(content_type, expected):
    assert extension_for(content_type) == expected


@pytest.mark.parametrize("content_type", ["", "application/x-no-such-type"])
def test_extension_for_unknown_type(content_type):
    with pytest.raises(StorageError):
        extension_for(content_type)


def test_has_extension():
    assert has_extension("photo.jpeg")
    assert has_extension(Path("/tmp/a.b/photo.PNG"))
    assert not has_extension("/tmp/a.b/photo")
    assert not has_extension("photo.")


@pytest.mark.asyncio
async def test_save_file_adds_extension(tmp_path: Path):
    path = await save_file(tmp_path / "avatar", b"png-bytes", "image/png")

    assert path == (tmp_path / "avatar.png").absolute()
    assert path.read_bytes() == b"png-bytes"


@pytest.mark.asyncio
async def test_save_file_write_failure(tmp_path: Path):
    with pytest.raises(StorageError):
        await save_file(tmp_path / "missing" / "file.bin", b"x")
