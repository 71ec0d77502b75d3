"""
Escher Guard
============
Escher request authentication for Starlette / FastAPI services.
"""

__version__ = "0.1.0"

# Configuration
from escher_guard.config import (
    AuthenticatorConfig,
    ALGO_PREFIX,
    VENDOR_KEY,
    AUTH_HEADER_NAME,
    DATE_HEADER_NAME,
)

# Exceptions
from escher_guard.exceptions import (
    EscherGuardError,
    AuthenticationError,
    ContextNotDecoratedError,
    ConfigurationError,
    KeyPoolError,
    ErrorKind,
    is_authentication_error,
)

# Authenticator
from escher_guard.middleware import (
    create_authenticator,
    VerificationRequest,
    AUTHENTICATION_ERROR_EVENT,
)

# Key Pool
from escher_guard.keypool import (
    KeyPool,
    KeyEntry,
    KeyDb,
    load_key_db,
)

# Signing
from escher_guard.signing import EscherSigner

# Logging
from escher_guard.log import configure_logging, AuthEventLogger

__all__ = [
    # Configuration
    "AuthenticatorConfig",
    "ALGO_PREFIX",
    "VENDOR_KEY",
    "AUTH_HEADER_NAME",
    "DATE_HEADER_NAME",
    # Exceptions
    "EscherGuardError",
    "AuthenticationError",
    "ContextNotDecoratedError",
    "ConfigurationError",
    "KeyPoolError",
    "ErrorKind",
    "is_authentication_error",
    # Authenticator
    "create_authenticator",
    "VerificationRequest",
    "AUTHENTICATION_ERROR_EVENT",
    # Key Pool
    "KeyPool",
    "KeyEntry",
    "KeyDb",
    "load_key_db",
    # Signing
    "EscherSigner",
    # Logging
    "configure_logging",
    "AuthEventLogger",
]
