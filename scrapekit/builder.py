"""Outbound request construction"""

from typing import Mapping, Optional, Union

from curl_cffi.requests import Headers

from .cancellation import RequestContext
from .config import (
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_CACHE_CONTROL,
    DEFAULT_USER_AGENT,
)
from .models import Request

HeaderInput = Optional[Union[Headers, Mapping[str, str]]]


def default_headers(user_agent: str = DEFAULT_USER_AGENT) -> Headers:
    """Headers every request carries unless the caller sets them"""
    return Headers(
        {
            "User-Agent": user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
            "Cache-Control": DEFAULT_CACHE_CONTROL,
        }
    )


def merge_headers(headers: HeaderInput, defaults: Headers) -> Headers:
    """
    Copy ``headers`` and fill in every default the caller left unset.

    Lookups are case-insensitive; a header set to an empty string counts
    as unset. The caller's object is never modified.
    """
    merged = Headers(headers) if headers is not None else Headers()
    for name, value in defaults.items():
        if not merged.get(name):
            merged[name] = value
    return merged


def build_request(
    method: str,
    url: str,
    headers: HeaderInput = None,
    body: Optional[bytes] = None,
    user_agent: str = DEFAULT_USER_AGENT,
    context: Optional[RequestContext] = None,
) -> Request:
    """
    Build a ready-to-send request.

    Args:
        method: HTTP method
        url: Absolute URL
        headers: Caller headers, they always win over defaults
        body: Request payload, copied so every attempt can resend it
        user_agent: Default User-Agent
        context: Cancellation context the send is bound to

    Returns:
        A fresh Request
    """
    return Request(
        method=method.upper(),
        url=url,
        headers=merge_headers(headers, default_headers(user_agent)),
        body=bytes(body or b""),
        context=context,
    )
