"""
Canonicalization
================
Turns a request into the canonical form covered by the Escher signature.
"""

import re
from typing import Any, Dict, Iterable, List, Tuple
from urllib.parse import quote, unquote, urlsplit

WHITESPACE = re.compile(r"\s+")


def split_url(url: Any) -> Tuple[str, str]:
    """Split a URL (absolute or path-only) into path and raw query."""
    parts = urlsplit(str(url))
    return parts.path or "/", parts.query


def normalize_path(path: str) -> str:
    """Resolve dot segments and duplicate slashes, keeping a trailing slash."""
    segments: List[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)

    normalized = "/" + "/".join(segments)
    if path.endswith("/") and normalized != "/":
        normalized += "/"
    return normalized


def _encode(value: str) -> str:
    return quote(unquote(value.replace("+", " ")), safe="-_.~")


def canonicalize_query(query: str) -> str:
    """Decode, re-encode (RFC 3986) and sort query parameters."""
    pairs = []
    for part in query.split("&"):
        if not part:
            continue
        key, _, value = part.partition("=")
        pairs.append((_encode(key), _encode(value)))
    return "&".join(f"{key}={value}" for key, value in sorted(pairs))


def normalize_headers(headers: Any) -> List[Tuple[str, str]]:
    """
    Lowercase header names and trim values.

    Accepts a mapping, a multi-dict exposing ``multi_items()`` or an
    iterable of ``(name, value)`` pairs.
    """
    if headers is None:
        return []
    if hasattr(headers, "multi_items"):
        pairs: Iterable = headers.multi_items()
    elif hasattr(headers, "items"):
        pairs = headers.items()
    else:
        pairs = headers

    return [
        (str(name).lower(), WHITESPACE.sub(" ", str(value).strip()))
        for name, value in pairs
    ]


def header_values(pairs: List[Tuple[str, str]]) -> Dict[str, str]:
    """Group normalized header pairs by name; repeated headers are joined with commas."""
    grouped: Dict[str, List[str]] = {}
    for name, value in pairs:
        grouped.setdefault(name, []).append(value)
    return {name: ",".join(values) for name, values in grouped.items()}


def canonicalize_request(
    method: str,
    path: str,
    query: str,
    headers: List[Tuple[str, str]],
    signed_headers: List[str],
    body_hash: str,
) -> str:
    """
    Build the canonical request string.

    Layout:
        METHOD
        /normalized/path
        sorted=query
        name:value (one line per signed header, sorted)
        <blank line>
        signed;header;names
        hex(hash(body))
    """
    values = header_values(headers)
    signed = sorted(signed_headers)
    canonical_headers = "\n".join(
        f"{name}:{values[name]}" for name in signed if name in values
    )
    return "\n".join([
        method.upper(),
        normalize_path(path),
        canonicalize_query(query),
        canonical_headers,
        "",
        ";".join(signed),
        body_hash,
    ])
