"""
Escher Signer
=============
Verifies inbound Escher-signed requests and signs outbound ones.

Usage:
    signer = EscherSigner(
        credential_scope="eu/suite/ems_request",
        algo_prefix="EMS",
        vendor_key="EMS",
        auth_header_name="X-EMS-Auth",
        date_header_name="X-EMS-Date",
    )

    key_id = signer.authenticate(request, key_db)
"""

import hmac
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from ..exceptions import AuthenticationError
from .canonical import (
    canonicalize_request,
    header_values,
    normalize_headers,
    split_url,
)
from .signature import (
    HASH_ALGORITHMS,
    compute_signature,
    format_long_date,
    format_short_date,
    hash_hex,
    parse_date,
)

logger = structlog.get_logger(__name__)

DEFAULT_CLOCK_SKEW_SECONDS = 300

AUTH_HEADER_PATTERN = re.compile(
    r"^(?P<prefix>\w+)-HMAC-(?P<hash_algo>\w+)\s+"
    r"Credential=(?P<key_id>[\w\-.]+)/(?P<short_date>\d{8})/(?P<credential_scope>[\w\-/]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[\w\-;]+),\s*"
    r"Signature=(?P<signature>[0-9a-f]+)$"
)

KeyLookup = Union[Mapping[str, str], Callable[[str], Optional[str]]]


def _lookup_secret(key_db: KeyLookup, key_id: str) -> Optional[str]:
    if callable(key_db):
        return key_db(key_id)
    return key_db.get(key_id)


class EscherSigner:
    """HMAC request signer and verifier bound to one credential scope."""

    def __init__(
        self,
        credential_scope: str,
        algo_prefix: str = "ESR",
        vendor_key: str = "Escher",
        auth_header_name: str = "X-Escher-Auth",
        date_header_name: str = "X-Escher-Date",
        hash_algo: str = "SHA256",
        clock_skew: int = DEFAULT_CLOCK_SKEW_SECONDS,
    ):
        if hash_algo not in HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {hash_algo}")

        self.credential_scope = credential_scope
        self.algo_prefix = algo_prefix
        self.vendor_key = vendor_key
        self.auth_header_name = auth_header_name
        self.date_header_name = date_header_name
        self.hash_algo = hash_algo
        self.clock_skew = clock_skew

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "EscherSigner":
        """Verifier factory used by the authenticator."""
        return cls(**options)

    def _signature(
        self,
        secret: str,
        method: str,
        url: Any,
        headers: List,
        signed_headers: List[str],
        body: Union[str, bytes, None],
        moment: datetime,
        hash_algo: Optional[str] = None,
    ) -> str:
        hash_algo = hash_algo or self.hash_algo
        path, query = split_url(url)
        canonical_request = canonicalize_request(
            method,
            path,
            query,
            headers,
            signed_headers,
            hash_hex(hash_algo, body),
        )
        return compute_signature(
            self.algo_prefix,
            hash_algo,
            secret,
            moment,
            self.credential_scope,
            canonical_request,
        )

    def authenticate(
        self,
        request: Any,
        key_db: KeyLookup,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Verify a signed request.

        Args:
            request: Object exposing ``method``, ``url``, ``headers`` and ``body``
            key_db: Mapping (or callable) from key id to secret
            now: Reference time for the clock skew check

        Returns:
            The key id the request was signed with

        Raises:
            AuthenticationError: if the request is not validly signed
        """
        now = now or datetime.now(timezone.utc)
        headers = normalize_headers(request.headers)
        values = header_values(headers)

        date_header = self.date_header_name.lower()
        auth_header = self.auth_header_name.lower()

        if date_header not in values:
            raise AuthenticationError(f"The {date_header} header is missing")
        if "host" not in values:
            raise AuthenticationError("The host header is missing")
        if auth_header not in values:
            raise AuthenticationError(f"The {auth_header} header is missing")

        match = AUTH_HEADER_PATTERN.match(values[auth_header])
        if not match:
            raise AuthenticationError("Could not parse auth header")

        if match.group("prefix") != self.algo_prefix:
            raise AuthenticationError("Invalid algorithm prefix")

        hash_algo = match.group("hash_algo")
        if hash_algo not in HASH_ALGORITHMS:
            raise AuthenticationError("Only SHA256 and SHA512 hash algorithms are allowed")

        try:
            request_date = parse_date(values[date_header])
        except ValueError:
            raise AuthenticationError("Invalid date header format") from None

        if match.group("short_date") != format_short_date(request_date):
            raise AuthenticationError("The credential date does not match with the request date")

        if abs((now - request_date).total_seconds()) > self.clock_skew:
            raise AuthenticationError("The request date is not within the accepted time range")

        if match.group("credential_scope") != self.credential_scope:
            raise AuthenticationError("The credential scope is invalid")

        signed_headers = match.group("signed_headers").split(";")
        if "host" not in signed_headers:
            raise AuthenticationError("The host header is not signed")
        if date_header not in signed_headers:
            raise AuthenticationError(f"The {date_header} header is not signed")

        key_id = match.group("key_id")
        secret = _lookup_secret(key_db, key_id)
        if not secret:
            raise AuthenticationError("Invalid Escher key")

        expected = self._signature(
            secret,
            request.method,
            request.url,
            headers,
            signed_headers,
            getattr(request, "body", None),
            request_date,
            hash_algo,
        )
        if not hmac.compare_digest(expected, match.group("signature")):
            raise AuthenticationError("The signatures do not match")

        logger.debug("escher_request_authenticated", key_id=key_id)
        return key_id

    def sign_request(
        self,
        method: str,
        url: Any,
        headers: Mapping[str, str],
        body: Union[str, bytes, None],
        key_id: str,
        secret: str,
        now: Optional[datetime] = None,
        headers_to_sign: Iterable[str] = (),
    ) -> Dict[str, str]:
        """
        Sign an outbound request.

        Returns:
            Copy of ``headers`` with the date and auth headers set

        Raises:
            ValueError: if no host header is present
        """
        now = now or datetime.now(timezone.utc)
        replaced = {self.date_header_name.lower(), self.auth_header_name.lower()}

        signed = {
            name: value for name, value in headers.items()
            if name.lower() not in replaced
        }
        signed[self.date_header_name] = format_long_date(now)

        normalized = normalize_headers(signed)
        present = {name for name, _ in normalized}
        if "host" not in present:
            raise ValueError("The host header is required to sign a request")

        wanted = {"host", self.date_header_name.lower()}
        wanted.update(name.lower() for name in headers_to_sign)
        signed_headers = sorted(wanted & present)

        signature = self._signature(
            secret, method, url, normalized, signed_headers, body, now
        )
        signed[self.auth_header_name] = (
            f"{self.algo_prefix}-HMAC-{self.hash_algo} "
            f"Credential={key_id}/{format_short_date(now)}/{self.credential_scope}, "
            f"SignedHeaders={';'.join(signed_headers)}, "
            f"Signature={signature}"
        )
        return signed
