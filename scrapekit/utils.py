"""String, URL and file helpers used by scrapers"""

import csv
import re
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ParamValue = Union[str, int, float, Sequence[Union[str, int, float]]]
Params = Union[Mapping[str, ParamValue], Iterable[Tuple[str, Union[str, int, float]]]]

_SPACES_RE = re.compile(r"(\s{2,}|\u00a0)")
_FILENAME_UNSAFE = " \\/,:;`~+!\"'#$%^&*(){}[]"


def get_exec_dir() -> Path:
    """Directory holding the running program"""
    return Path(sys.argv[0]).resolve().parent


def tidy_html_text(text: str) -> str:
    """Collapse whitespace runs and NBSPs, drop line breaks, trim spaces"""
    text = _SPACES_RE.sub(" ", text)
    text = text.replace("\r", "").replace("\n", "")
    return text.strip(" ")


def _iter_params(params: Params) -> Iterable[Tuple[str, str]]:
    items = params.items() if isinstance(params, Mapping) else params
    for key, value in items:
        if isinstance(value, (list, tuple)):
            for v in value:
                yield key, str(v)
        else:
            yield key, str(value)


def encode_params(params: Params) -> str:
    """URL-encode parameters with keys in sorted order, spaces as '+'"""
    # Stable sort keeps the order of repeated keys
    return urlencode(sorted(_iter_params(params), key=lambda kv: kv[0]))


def combine_url(base: str, suffix: str = "", params: Optional[Params] = None) -> str:
    """
    Combine a base URL, an optional path suffix and query parameters.

    The suffix path is appended to the base path and doubled slashes are
    collapsed. Parameters are added to any query already on ``base``; the
    resulting query is encoded with keys in sorted order.

    Examples:
        >>> combine_url("https://example.com/api/", "/items", {"q": "a b", "page": 2})
        'https://example.com/api/items?page=2&q=a+b'
    """
    parts = urlsplit(base)
    path = parts.path
    query = parts.query

    if suffix:
        path = (path + urlsplit(suffix).path).replace("//", "/")

    if params is not None:
        pairs = parse_qsl(query, keep_blank_values=True)
        pairs.extend(_iter_params(params))
        query = encode_params(pairs)

    return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))


def replace_chars(text: str, chars: str, repl: str) -> str:
    """Replace every character of ``chars`` in ``text`` with ``repl``"""
    for ch in chars:
        text = text.replace(ch, repl)
    return text


def sanitize_filename(name: str, repl: str = "_") -> str:
    return replace_chars(name, _FILENAME_UNSAFE, repl)


def append_unique(items: List[str], item: str) -> List[str]:
    """Append ``item`` unless it is already present"""
    if item not in items:
        items.append(item)
    return items


def lists_to_dict(keys: Sequence[str], values: Sequence[str]) -> Dict[str, str]:
    """Zip two lists into a dict; every key needs a value"""
    if len(values) < len(keys):
        raise ValueError(f"expected at least {len(keys)} values, got {len(values)}")
    return dict(zip(keys, values))


def csv_to_dicts(path: Union[str, Path]) -> List[Dict[str, str]]:
    """
    Load a CSV file into a list of rows keyed by the header row.

    Args:
        path: CSV file path

    Returns:
        One dict per data row
    """
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            return []
        return [dict(zip(header, row)) for row in reader]
