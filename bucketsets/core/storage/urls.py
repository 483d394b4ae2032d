"""
Public URL helpers for listed objects.

URLs are advisory metadata for the frontend, never used for
authorization, so these helpers degrade to best-effort output on odd
input instead of raising.
"""

import re
from typing import Optional
from urllib.parse import quote

from .models import BackendDescriptor

# Same unreserved set as JavaScript's encodeURIComponent
_SEGMENT_SAFE = "!*'()"

_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):/+", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_JUNK = "/\"'"


def normalize(raw: Optional[str]) -> str:
    """
    Canonicalize a base URL such as a PUBLIC_URL or endpoint value.

    Trims whitespace and quotes, forces a scheme (https when none is
    given), collapses repeated slashes after the scheme and drops
    trailing slashes. normalize(normalize(x)) == normalize(x).
    """
    if not raw:
        return ""

    value = _WHITESPACE_RE.sub("", str(raw)).strip("\"'")

    match = _SCHEME_RE.match(value)
    if match:
        scheme = match.group(1)
        rest = value[match.end():]
    else:
        scheme = "https"
        rest = value.lstrip("/")

    rest = rest.rstrip(_EDGE_JUNK)
    if not rest:
        return ""

    return f"{scheme}://{rest}"


def encode_key(key: Optional[str]) -> str:
    """Percent-encode each path segment of a key, keeping '/' separators."""
    key = str(key or "").lstrip("/")
    if not key:
        return ""
    return "/".join(quote(segment, safe=_SEGMENT_SAFE) for segment in key.split("/"))


def join(base: Optional[str], key: Optional[str]) -> str:
    """
    Join a base URL and a raw object key.

    The key is the logical key and is encoded exactly once, segment by
    segment, so "a/b c.png" becomes "a/b%20c.png". With no base the whole
    key is encoded as one component, '/' included.
    """
    base = str(base or "").rstrip("/")

    if not base:
        return quote(str(key or ""), safe=_SEGMENT_SAFE)

    encoded = encode_key(key)
    if not encoded:
        return base
    return f"{base}/{encoded}"


def public_url(descriptor: BackendDescriptor, key: str) -> str:
    """Prefer the set's public URL, then its endpoint, then the bare key."""
    base = descriptor.public_url_base or normalize(descriptor.endpoint)
    return join(base, key)
