"""
Escher Auth Middleware for Starlette / FastAPI
==============================================
Rejects requests that are not Escher-signed with a key from the pool.

Usage:
    from escher_guard import AuthenticatorConfig
    from escher_guard.asgi import EscherAuthMiddleware

    app.add_middleware(
        EscherAuthMiddleware,
        config=AuthenticatorConfig(
            credential_scope=settings.ESCHER_CREDENTIAL_SCOPE,
            key_pool=settings.ESCHER_KEY_POOL,
        ),
    )
"""

import asyncio
from dataclasses import dataclass
from http import HTTPStatus
from typing import AbstractSet, Any, Awaitable, List, Optional, Tuple

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .config import DEFAULT_EXCLUDED_PATHS, AuthenticatorConfig
from .log import AuthEventLogger
from .middleware import (
    EventLogger,
    KeyPoolLoader,
    VerifierFactory,
    create_authenticator,
)

logger = structlog.get_logger(__name__)


async def read_text_body(request: Request) -> str:
    """Read the request body as text; undecodable bytes survive for hashing."""
    body = await request.body()
    return body.decode("utf-8", "surrogateescape")


def request_path(request: Request) -> str:
    """Path exactly as the client sent it; the signature covers the encoded form."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]


@dataclass(frozen=True)
class InboundRequest:
    """
    Request handed to the authenticator, decorated with a deferred raw body.

    ``raw_body`` is a future, so it can be awaited again after the
    authenticator has resolved it.
    """
    method: str
    url: str
    headers: List[Tuple[str, str]]
    raw_body: Awaitable[str]

    @classmethod
    def from_starlette(cls, request: Request) -> "InboundRequest":
        url = request_path(request)
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return cls(
            method=request.method,
            url=url,
            headers=list(request.headers.items()),
            raw_body=asyncio.ensure_future(read_text_body(request)),
        )


class StarletteRequestContext:
    """Context whose abort turns into a JSON error response."""

    def __init__(self, request: InboundRequest):
        self.request = request
        self.response: Optional[Response] = None

    def abort(self, status_code: int, message: str) -> None:
        self.response = JSONResponse(
            status_code=status_code,
            content={
                "error": HTTPStatus(status_code).phrase.lower().replace(" ", "_"),
                "message": message,
            },
        )


class EscherAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware that requires a valid Escher signature on every request.

    Paths in ``excluded_paths`` (health checks, metrics) pass through.
    Failed verification answers 401 and the route never runs.
    """

    def __init__(
        self,
        app,
        config: Optional[AuthenticatorConfig] = None,
        event_logger: Optional[EventLogger] = None,
        verifier_factory: Optional[VerifierFactory] = None,
        key_pool_loader: Optional[KeyPoolLoader] = None,
        excluded_paths: Optional[AbstractSet[str]] = None,
    ):
        super().__init__(app)
        self.config = config or AuthenticatorConfig.from_env()
        self.excluded_paths = frozenset(
            DEFAULT_EXCLUDED_PATHS if excluded_paths is None else excluded_paths
        )
        self._authenticate = create_authenticator(
            self.config,
            event_logger or AuthEventLogger(__name__),
            verifier_factory=verifier_factory,
            key_pool_loader=key_pool_loader,
        )

        logger.info(
            "escher_auth_configured",
            credential_scope=self.config.credential_scope,
            excluded_paths=sorted(self.excluded_paths),
        )

    async def dispatch(self, request: Request, call_next) -> Any:
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        context = StarletteRequestContext(InboundRequest.from_starlette(request))
        response = await self._authenticate(context, lambda: call_next(request))

        if context.response is not None:
            return context.response
        return response
