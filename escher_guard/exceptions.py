"""
Escher Guard Exceptions
=======================
Exception classes raised by the authenticator, the signer and the key pool.
"""

from enum import Enum


CONTEXT_NOT_DECORATED_MESSAGE = "Context is not decorated. Use koa-bodyparser middleware first."


class ErrorKind(str, Enum):
    """Discriminant used to route errors through the authenticator."""
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    KEY_POOL = "key_pool"
    WIRING = "wiring"


class EscherGuardError(Exception):
    """Base exception for escher_guard."""

    kind: ErrorKind = ErrorKind.WIRING

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(EscherGuardError):
    """Raised when a request signature cannot be verified."""

    kind = ErrorKind.AUTHENTICATION


class ContextNotDecoratedError(EscherGuardError):
    """Raised when the request carries no raw body."""

    kind = ErrorKind.WIRING

    def __init__(self, message: str = CONTEXT_NOT_DECORATED_MESSAGE):
        super().__init__(message)


class ConfigurationError(EscherGuardError):
    """Raised when required configuration is missing."""

    kind = ErrorKind.CONFIGURATION


class KeyPoolError(EscherGuardError):
    """Raised when the serialized key pool is malformed."""

    kind = ErrorKind.KEY_POOL


def is_authentication_error(error: BaseException) -> bool:
    """Check whether an error signals a failed verification."""
    return getattr(error, "kind", None) is ErrorKind.AUTHENTICATION
