"""
Escher Signing Module
=====================
HMAC request signing and verification with a credential scope.
"""

from .canonical import (
    canonicalize_request,
    canonicalize_query,
    normalize_headers,
    normalize_path,
)
from .signature import (
    compute_signature,
    signing_key,
    parse_date,
    HASH_ALGORITHMS,
)
from .signer import EscherSigner, DEFAULT_CLOCK_SKEW_SECONDS

__all__ = [
    # Canonicalization
    "canonicalize_request",
    "canonicalize_query",
    "normalize_headers",
    "normalize_path",
    # Signature
    "compute_signature",
    "signing_key",
    "parse_date",
    "HASH_ALGORITHMS",
    # Signer
    "EscherSigner",
    "DEFAULT_CLOCK_SKEW_SECONDS",
]
