"""
Authenticator Configuration
===========================
Fixed Escher options and the per-service configuration.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import ConfigurationError

# Fixed Escher options, forwarded to the signer regardless of caller input
ALGO_PREFIX = "EMS"
VENDOR_KEY = "EMS"
AUTH_HEADER_NAME = "X-EMS-Auth"
DATE_HEADER_NAME = "X-EMS-Date"

# Environment variables
CREDENTIAL_SCOPE_ENV = "ESCHER_CREDENTIAL_SCOPE"
KEY_POOL_ENV = "ESCHER_KEY_POOL"

# Paths that bypass authentication in the ASGI middleware
DEFAULT_EXCLUDED_PATHS = frozenset({"/health", "/ready", "/metrics"})


@dataclass(frozen=True)
class AuthenticatorConfig:
    """Configuration for Escher request authentication."""
    credential_scope: str
    key_pool: str
    algo_prefix: str = field(default=ALGO_PREFIX, init=False)
    vendor_key: str = field(default=VENDOR_KEY, init=False)
    auth_header_name: str = field(default=AUTH_HEADER_NAME, init=False)
    date_header_name: str = field(default=DATE_HEADER_NAME, init=False)

    def verifier_options(self) -> Dict[str, str]:
        """Options handed to the verifier factory. The key pool is not among them."""
        return {
            "algo_prefix": self.algo_prefix,
            "vendor_key": self.vendor_key,
            "auth_header_name": self.auth_header_name,
            "date_header_name": self.date_header_name,
            "credential_scope": self.credential_scope,
        }

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "AuthenticatorConfig":
        """
        Build the configuration from environment variables.

        Raises:
            ConfigurationError: if the credential scope or key pool is unset
        """
        environ = os.environ if environ is None else environ
        credential_scope = environ.get(CREDENTIAL_SCOPE_ENV, "")
        key_pool = environ.get(KEY_POOL_ENV, "")

        missing = [
            name for name, value in (
                (CREDENTIAL_SCOPE_ENV, credential_scope),
                (KEY_POOL_ENV, key_pool),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")

        return cls(credential_scope=credential_scope, key_pool=key_pool)
