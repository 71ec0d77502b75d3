"""
Escher httpx Auth
=================
Signs outbound requests with the pool's active key.

Usage:
    auth = EscherAuth.from_config(config, key_prefix="suite_cuda")

    async with httpx.AsyncClient(base_url=SUITE_URL, auth=auth) as client:
        response = await client.post("/v1/contacts", json=payload)
"""

from typing import Generator

import httpx
import structlog

from .config import AuthenticatorConfig
from .keypool import KeyEntry, KeyPool
from .signing import EscherSigner

logger = structlog.get_logger(__name__)


class EscherAuth(httpx.Auth):
    """httpx auth flow adding the Escher date and auth headers."""

    requires_request_body = True

    def __init__(self, signer: EscherSigner, key: KeyEntry):
        if key.accept_only:
            raise ValueError(f"Key {key.key_id} is accept-only and cannot sign requests")
        self.signer = signer
        self.key = key

    @classmethod
    def from_config(cls, config: AuthenticatorConfig, key_prefix: str) -> "EscherAuth":
        key = KeyPool.from_json(config.key_pool).active_key(key_prefix)
        logger.info("escher_signing_key_selected", key_id=key.key_id)
        return cls(EscherSigner.from_options(config.verifier_options()), key)

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        signed = self.signer.sign_request(
            request.method,
            request.url.raw_path.decode("ascii"),
            request.headers,
            request.content,
            self.key.key_id,
            self.key.secret,
        )
        for name in (self.signer.date_header_name, self.signer.auth_header_name):
            request.headers[name] = signed[name]
        yield request
