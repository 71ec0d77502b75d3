"""
Unit Tests for the Escher Signer
================================
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from escher_guard import AuthenticationError, EscherSigner, KeyPool
from escher_guard.signing import canonicalize_query, normalize_headers, normalize_path, parse_date

from .conftest import CREDENTIAL_SCOPE, FIXED_NOW, KEY_ID, KEY_POOL, SECRET

BODY = '{"contact_id": 42}'


def signed_request(signer, body=BODY, url="/v1/events?b=2&a=1", now=FIXED_NOW, key_id=KEY_ID, secret=SECRET):
    headers = signer.sign_request(
        "POST",
        url,
        {"Host": "api.example.com", "Content-Type": "application/json"},
        body,
        key_id,
        secret,
        now=now,
    )
    return SimpleNamespace(method="POST", url=url, headers=headers, body=body)


@pytest.fixture
def key_db():
    return KeyPool.from_json(KEY_POOL).key_db()


class TestCanonicalization:

    def test_normalize_path(self):
        assert normalize_path("/a/./b/../c//d/") == "/a/c/d/"
        assert normalize_path("") == "/"
        assert normalize_path("/../x") == "/x"

    def test_canonicalize_query_sorts_and_encodes(self):
        assert canonicalize_query("b=2&a=1&c=hello%20world") == "a=1&b=2&c=hello%20world"
        assert canonicalize_query("q=a+b&&empty") == "empty=&q=a%20b"

    def test_normalize_headers_lowercases_and_trims(self):
        pairs = normalize_headers({"Content-Type": "  application/json ", "X-Multi": "a   b"})

        assert pairs == [("content-type", "application/json"), ("x-multi", "a b")]

    def test_parse_date_formats(self):
        assert parse_date("20240101T120000Z") == FIXED_NOW
        assert parse_date("Mon, 01 Jan 2024 12:00:00 GMT") == FIXED_NOW
        with pytest.raises(ValueError):
            parse_date("yesterday")


class TestSignRequest:

    def test_adds_date_and_auth_headers(self, signer):
        headers = signer.sign_request(
            "GET", "/v1/ping", {"Host": "api.example.com"}, "", KEY_ID, SECRET, now=FIXED_NOW
        )

        assert headers["X-EMS-Date"] == "20240101T120000Z"
        assert headers["X-EMS-Auth"].startswith(
            f"EMS-HMAC-SHA256 Credential={KEY_ID}/20240101/{CREDENTIAL_SCOPE}, "
            "SignedHeaders=host;x-ems-date, Signature="
        )

    def test_signature_is_deterministic(self, signer):
        first = signed_request(signer)
        second = signed_request(signer)

        assert first.headers["X-EMS-Auth"] == second.headers["X-EMS-Auth"]

    def test_requires_host_header(self, signer):
        with pytest.raises(ValueError):
            signer.sign_request("GET", "/", {}, "", KEY_ID, SECRET, now=FIXED_NOW)

    def test_extra_headers_can_be_signed(self, signer):
        headers = signer.sign_request(
            "POST",
            "/v1/events",
            {"Host": "api.example.com", "Content-Type": "application/json"},
            BODY,
            KEY_ID,
            SECRET,
            now=FIXED_NOW,
            headers_to_sign=["Content-Type"],
        )

        assert "SignedHeaders=content-type;host;x-ems-date," in headers["X-EMS-Auth"]


class TestAuthenticate:

    def test_valid_request_returns_key_id(self, signer, key_db):
        request = signed_request(signer)

        assert signer.authenticate(request, key_db, now=FIXED_NOW) == KEY_ID

    def test_accept_only_key_verifies(self, signer, key_db):
        request = signed_request(signer, key_id="suite_cuda_v2", secret="rotatedSecret")

        assert signer.authenticate(request, key_db, now=FIXED_NOW) == "suite_cuda_v2"

    def test_query_order_does_not_matter(self, signer, key_db):
        request = signed_request(signer)
        request.url = "/v1/events?a=1&b=2"

        assert signer.authenticate(request, key_db, now=FIXED_NOW) == KEY_ID

    def test_callable_key_db(self, signer):
        request = signed_request(signer)

        assert signer.authenticate(request, {KEY_ID: SECRET}.get, now=FIXED_NOW) == KEY_ID

    def test_tampered_body(self, signer, key_db):
        request = signed_request(signer)
        request.body = '{"contact_id": 43}'

        with pytest.raises(AuthenticationError, match="The signatures do not match"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_whitespace_in_body_is_significant(self, signer, key_db):
        request = signed_request(signer, body="  test body  ")
        request.body = "test body"

        with pytest.raises(AuthenticationError, match="The signatures do not match"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_unknown_key(self, signer, key_db):
        request = signed_request(signer, key_id="suite_unknown_v1")

        with pytest.raises(AuthenticationError, match="Invalid Escher key"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_expired_request(self, signer, key_db):
        request = signed_request(signer)

        with pytest.raises(AuthenticationError, match="not within the accepted time range"):
            signer.authenticate(request, key_db, now=FIXED_NOW + timedelta(minutes=10))

    def test_within_clock_skew(self, signer, key_db):
        request = signed_request(signer)

        assert signer.authenticate(request, key_db, now=FIXED_NOW + timedelta(minutes=4)) == KEY_ID

    def test_wrong_credential_scope(self, key_db):
        other = EscherSigner(
            credential_scope="us/suite/ems_request",
            algo_prefix="EMS",
            auth_header_name="X-EMS-Auth",
            date_header_name="X-EMS-Date",
        )
        request = signed_request(other)
        verifier = EscherSigner(
            credential_scope=CREDENTIAL_SCOPE,
            algo_prefix="EMS",
            auth_header_name="X-EMS-Auth",
            date_header_name="X-EMS-Date",
        )

        with pytest.raises(AuthenticationError, match="The credential scope is invalid"):
            verifier.authenticate(request, key_db, now=FIXED_NOW)

    def test_missing_date_header(self, signer, key_db):
        request = signed_request(signer)
        del request.headers["X-EMS-Date"]

        with pytest.raises(AuthenticationError, match="The x-ems-date header is missing"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_missing_host_header(self, signer, key_db):
        request = signed_request(signer)
        del request.headers["Host"]

        with pytest.raises(AuthenticationError, match="The host header is missing"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_missing_auth_header(self, signer, key_db):
        request = signed_request(signer)
        del request.headers["X-EMS-Auth"]

        with pytest.raises(AuthenticationError, match="The x-ems-auth header is missing"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_unparsable_auth_header(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Auth"] = "Bearer abc"

        with pytest.raises(AuthenticationError, match="Could not parse auth header"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_wrong_algorithm_prefix(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Auth"] = request.headers["X-EMS-Auth"].replace("EMS-HMAC", "ESR-HMAC")

        with pytest.raises(AuthenticationError, match="Invalid algorithm prefix"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_unsupported_hash_algorithm(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Auth"] = request.headers["X-EMS-Auth"].replace("SHA256", "MD5")

        with pytest.raises(AuthenticationError, match="Only SHA256 and SHA512"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_credential_date_mismatch(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Date"] = "20240102T000100Z"

        with pytest.raises(AuthenticationError, match="credential date does not match"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_invalid_date_header(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Date"] = "not-a-date"

        with pytest.raises(AuthenticationError, match="Invalid date header format"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_host_must_be_signed(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Auth"] = request.headers["X-EMS-Auth"].replace(
            "SignedHeaders=host;x-ems-date", "SignedHeaders=x-ems-date"
        )

        with pytest.raises(AuthenticationError, match="The host header is not signed"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_date_header_must_be_signed(self, signer, key_db):
        request = signed_request(signer)
        request.headers["X-EMS-Auth"] = request.headers["X-EMS-Auth"].replace(
            "SignedHeaders=host;x-ems-date", "SignedHeaders=host"
        )

        with pytest.raises(AuthenticationError, match="The x-ems-date header is not signed"):
            signer.authenticate(request, key_db, now=FIXED_NOW)

    def test_unsupported_hash_algorithm_option(self):
        with pytest.raises(ValueError):
            EscherSigner(credential_scope=CREDENTIAL_SCOPE, hash_algo="MD5")
