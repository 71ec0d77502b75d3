"""
Escher Request Authenticator
============================
Framework-neutral middleware that verifies Escher-signed requests.

Usage:
    from escher_guard import AuthenticatorConfig, create_authenticator
    from escher_guard.log import AuthEventLogger

    authenticate = create_authenticator(
        AuthenticatorConfig(credential_scope="eu/suite/ems_request", key_pool=key_pool_json),
        AuthEventLogger(),
    )

    await authenticate(context, proceed)

The context must expose ``request.raw_body`` (a string or an awaitable
resolving to one) and ``abort(status_code, message)``.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol

from .config import AuthenticatorConfig
from .exceptions import ContextNotDecoratedError, is_authentication_error
from .keypool import load_key_db
from .signing import EscherSigner

AUTHENTICATION_ERROR_EVENT = "authentication_request_error"
UNAUTHORIZED_STATUS = 401

_MISSING = object()


class Verifier(Protocol):
    def authenticate(self, request: Any, key_db: Any) -> Any: ...


class EventLogger(Protocol):
    def error(self, event: str, message: str, error: BaseException) -> None: ...


class RequestContext(Protocol):
    request: Any

    def abort(self, status_code: int, message: str) -> None: ...


VerifierFactory = Callable[[Dict[str, str]], Verifier]
KeyPoolLoader = Callable[[str], Mapping[str, str]]
Proceed = Callable[[], Awaitable[Any]]
Middleware = Callable[[RequestContext, Proceed], Awaitable[Any]]


class VerificationRequest:
    """
    Read-through view of a request with the resolved body attached.

    ``body`` is the view's own attribute; everything else is read from
    the wrapped request, which is neither copied nor modified. Verifiers
    read the payload from ``body``: the delegated ``raw_body`` is whatever
    the upstream step attached and may be an awaitable.
    """

    __slots__ = ("_request", "body")

    def __init__(self, request: Any, body: str):
        object.__setattr__(self, "_request", request)
        object.__setattr__(self, "body", body)

    def __getattr__(self, name: str) -> Any:
        return getattr(object.__getattribute__(self, "_request"), name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("VerificationRequest is read-only")

    @property
    def original(self) -> Any:
        return object.__getattribute__(self, "_request")

    def __repr__(self) -> str:
        return f"VerificationRequest(request={self.original!r}, body={self.body!r})"


async def resolve_raw_body(request: Any) -> str:
    """
    Resolve the raw body attached by the upstream body step.

    An absent ``raw_body`` is a wiring error. An empty body, or an
    awaitable resolving to one, is a valid body.

    Raises:
        ContextNotDecoratedError: if the request carries no ``raw_body``
    """
    raw_body = getattr(request, "raw_body", _MISSING)
    if raw_body is _MISSING:
        raise ContextNotDecoratedError()

    if inspect.isawaitable(raw_body):
        raw_body = await raw_body
    return raw_body


def create_authenticator(
    config: AuthenticatorConfig,
    logger: EventLogger,
    verifier_factory: Optional[VerifierFactory] = None,
    key_pool_loader: Optional[KeyPoolLoader] = None,
) -> Middleware:
    """
    Build the Escher authentication middleware.

    Args:
        config: Credential scope and serialized key pool
        logger: Sink for authentication failures
        verifier_factory: Builds the verifier from the fixed Escher options
        key_pool_loader: Turns the serialized key pool into a key lookup

    Returns:
        ``async (context, proceed)`` middleware
    """
    verifier_factory = verifier_factory or EscherSigner.from_options
    key_pool_loader = key_pool_loader or load_key_db

    async def authenticate_request(context: RequestContext, proceed: Proceed) -> Any:
        body = await resolve_raw_body(context.request)

        verifier = verifier_factory(config.verifier_options())
        key_db = key_pool_loader(config.key_pool)

        try:
            verifier.authenticate(VerificationRequest(context.request, body), key_db)
        except Exception as error:
            if not is_authentication_error(error):
                raise
            message = getattr(error, "message", None) or str(error)
            logger.error(AUTHENTICATION_ERROR_EVENT, message, error)
            context.abort(UNAUTHORIZED_STATUS, message)
            return None

        return await proceed()

    return authenticate_request
