import json
from datetime import datetime, timezone

import pytest

from escher_guard import AuthenticatorConfig, EscherSigner

CREDENTIAL_SCOPE = "eu/suite/ems_request"
KEY_ID = "suite_cuda_v1"
SECRET = "testSecret"

KEY_POOL = json.dumps([
    {"keyId": "suite_cuda_v1", "secret": "testSecret", "acceptOnly": 0},
    {"keyId": "suite_cuda_v2", "secret": "rotatedSecret", "acceptOnly": 1},
])

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return AuthenticatorConfig(credential_scope=CREDENTIAL_SCOPE, key_pool=KEY_POOL)


@pytest.fixture
def signer(config):
    return EscherSigner.from_options(config.verifier_options())
