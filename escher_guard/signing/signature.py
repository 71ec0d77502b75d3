"""
Signature Functions
===================
Escher HMAC signing key derivation and signature computation.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Union

HASH_ALGORITHMS = {
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}

LONG_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SHORT_DATE_FORMAT = "%Y%m%d"


def body_bytes(body: Union[str, bytes, None]) -> bytes:
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    return body.encode("utf-8", "surrogateescape")


def hash_hex(hash_algo: str, data: Union[str, bytes, None]) -> str:
    """Hex digest of data using the named hash algorithm."""
    return HASH_ALGORITHMS[hash_algo](body_bytes(data)).hexdigest()


def format_long_date(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(LONG_DATE_FORMAT)


def format_short_date(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(SHORT_DATE_FORMAT)


def parse_date(value: str) -> datetime:
    """
    Parse a request date header.

    Accepts the Escher long format (``20110909T233600Z``) and RFC 1123 dates.

    Raises:
        ValueError: if the value matches neither format
    """
    try:
        return datetime.strptime(value, LONG_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError) as e:
        raise ValueError(f"Unsupported date format: {value!r}") from e
    if parsed is None:
        raise ValueError(f"Unsupported date format: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def string_to_sign(
    algo_prefix: str,
    hash_algo: str,
    canonical_request: str,
    moment: datetime,
    credential_scope: str,
) -> str:
    return "\n".join([
        f"{algo_prefix}-HMAC-{hash_algo}",
        format_long_date(moment),
        f"{format_short_date(moment)}/{credential_scope}",
        hash_hex(hash_algo, canonical_request),
    ])


def signing_key(
    algo_prefix: str,
    hash_algo: str,
    secret: str,
    moment: datetime,
    credential_scope: str,
) -> bytes:
    """
    Derive the signing key.

    The chain starts from ``{algo_prefix}{secret}`` and is folded over the
    short date and every ``/``-separated part of the credential scope.
    """
    digest = HASH_ALGORITHMS[hash_algo]
    key = f"{algo_prefix}{secret}".encode()
    for part in [format_short_date(moment), *credential_scope.split("/")]:
        key = hmac.new(key, part.encode(), digest).digest()
    return key


def compute_signature(
    algo_prefix: str,
    hash_algo: str,
    secret: str,
    moment: datetime,
    credential_scope: str,
    canonical_request: str,
) -> str:
    """Hex-encoded HMAC signature of the canonical request."""
    key = signing_key(algo_prefix, hash_algo, secret, moment, credential_scope)
    message = string_to_sign(algo_prefix, hash_algo, canonical_request, moment, credential_scope)
    return hmac.new(key, message.encode(), HASH_ALGORITHMS[hash_algo]).hexdigest()
