"""Response body interpretation: HTML documents and JSON"""

from typing import Any

import orjson
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from .exceptions import DecodeError, ParseError

DOCUMENT_PARSER = "lxml"


def parse_document(body: bytes) -> BeautifulSoup:
    """
    Parse an HTML body into a navigable document.

    Raises:
        ParseError: the markup was rejected by the parser
    """
    try:
        return BeautifulSoup(body, DOCUMENT_PARSER)
    except (ParserRejectedMarkup, ValueError, TypeError) as e:
        raise ParseError(f"failed to parse document: {e}") from e


def decode_json(body: bytes) -> Any:
    """
    Decode a JSON body.

    Raises:
        DecodeError: the body is not valid JSON
    """
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"failed to decode JSON response: {e}") from e


def encode_json(data: Any) -> bytes:
    """Serialize ``data`` to a JSON request body"""
    return orjson.dumps(data)
