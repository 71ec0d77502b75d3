"""
FastAPI Dependency
==================
Per-route Escher authentication.

Usage:
    escher_auth = require_escher_auth(config)

    @app.post("/v1/events", dependencies=[Depends(escher_auth)])
    async def receive_event(payload: EventPayload):
        ...
"""

from typing import Callable, Awaitable, Optional

from fastapi import HTTPException, Request

from .asgi import InboundRequest
from .config import AuthenticatorConfig
from .log import AuthEventLogger
from .middleware import (
    EventLogger,
    KeyPoolLoader,
    VerifierFactory,
    create_authenticator,
)


class HTTPExceptionContext:
    """Context whose abort raises an HTTPException for FastAPI to render."""

    def __init__(self, request: InboundRequest):
        self.request = request

    def abort(self, status_code: int, message: str) -> None:
        raise HTTPException(status_code=status_code, detail=message)


def require_escher_auth(
    config: AuthenticatorConfig,
    event_logger: Optional[EventLogger] = None,
    verifier_factory: Optional[VerifierFactory] = None,
    key_pool_loader: Optional[KeyPoolLoader] = None,
) -> Callable[[Request], Awaitable[None]]:
    """
    Build a dependency that requires a valid Escher signature.

    Raises 401 when verification fails. Marks the request with
    ``request.state.escher_authenticated`` when it passes.
    """
    authenticate = create_authenticator(
        config,
        event_logger or AuthEventLogger(__name__),
        verifier_factory=verifier_factory,
        key_pool_loader=key_pool_loader,
    )

    async def escher_auth_dependency(request: Request) -> None:
        async def mark_authenticated() -> None:
            request.state.escher_authenticated = True

        context = HTTPExceptionContext(InboundRequest.from_starlette(request))
        await authenticate(context, mark_authenticated)

    return escher_auth_dependency
