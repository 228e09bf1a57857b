"""Tests for DPoP-authorized management API calls."""

from __future__ import annotations

import json
from typing import Any

import httpx
import jwt
import pytest

from oktadpop.dpop import DpopProofBuilder, generate_ath
from oktadpop.exceptions import NetworkError, NotAuthenticatedError
from oktadpop.invoker import ApiInvoker
from oktadpop.keys import KeyMaterial
from oktadpop.models import AccessToken, ServiceIdentity
from oktadpop.output import OutputManager
from oktadpop.signing import JwtSigner
from oktadpop.token import TokenCache


ORG_URL = "https://example.okta.com"


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=[{"id": "00u1"}])


def _proof_claims(request: httpx.Request) -> dict[str, Any]:
    return jwt.decode(request.headers["DPoP"], options={"verify_signature": False})


@pytest.fixture(autouse=True)
def _quiet(quiet_output: OutputManager) -> None:
    """All tests in this module run with a quiet global output manager."""


@pytest.fixture
def cache() -> TokenCache:
    cache = TokenCache()
    cache.store(AccessToken(value="tok-1"))
    return cache


@pytest.fixture
def build_invoker(
    identity: ServiceIdentity,
    key_material: KeyMaterial,
    signer: JwtSigner,
    cache: TokenCache,
    make_transport,
):
    def _build(handler=_ok, token_cache: TokenCache | None = None):
        transport = make_transport(handler)
        invoker = ApiInvoker(
            identity,
            DpopProofBuilder(key_material, signer),
            token_cache if token_cache is not None else cache,
            httpx.Client(transport=transport),
        )
        return invoker, transport

    return _build


class TestApiInvoker:
    def test_authorization_and_proof(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        response = invoker.call("/api/v1/users", "GET")

        assert response.status_code == 200
        request = transport.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{ORG_URL}/api/v1/users"
        assert request.headers["Authorization"] == "DPoP tok-1"
        assert request.headers["Accept"] == "application/json"

        claims = _proof_claims(request)
        assert claims["htm"] == "GET"
        assert claims["htu"] == f"{ORG_URL}/api/v1/users"
        assert claims["ath"] == generate_ath("tok-1")
        assert "nonce" not in claims

    def test_method_normalised(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.call("/api/v1/groups", "post", body="{}")
        assert transport.requests[0].method == "POST"
        assert _proof_claims(transport.requests[0])["htm"] == "POST"

    def test_caller_headers_win(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.call(
            "/api/v1/users",
            headers={"Accept": "application/xml", "X-Request-Id": "r-1"},
        )
        request = transport.requests[0]
        assert request.headers["Accept"] == "application/xml"
        assert request.headers["X-Request-Id"] == "r-1"
        assert request.headers["Authorization"] == "DPoP tok-1"

    def test_caller_headers_win_regardless_of_case(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.call(
            "/api/v1/users",
            headers={"accept": "application/xml", "authorization": "DPoP other"},
        )
        request = transport.requests[0]
        assert request.headers.get_list("Accept") == ["application/xml"]
        assert request.headers.get_list("Authorization") == ["DPoP other"]
        assert len(request.headers.get_list("DPoP")) == 1

    def test_raw_body(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.call("/api/v1/groups", "POST", body='{"profile": {"name": "ops"}}')
        assert transport.requests[0].content == b'{"profile": {"name": "ops"}}'

    def test_json_body(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.post("/api/v1/groups", json_body={"profile": {"name": "ops"}})
        assert json.loads(transport.requests[0].content) == {"profile": {"name": "ops"}}

    def test_query_params_not_in_htu(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.get("/api/v1/users", params={"limit": 5})
        request = transport.requests[0]
        assert request.url.params["limit"] == "5"
        assert _proof_claims(request)["htu"] == f"{ORG_URL}/api/v1/users"

    def test_fresh_proof_per_call(self, build_invoker) -> None:
        invoker, transport = build_invoker()
        invoker.get("/api/v1/users")
        invoker.get("/api/v1/users")
        first, second = (_proof_claims(r) for r in transport.requests)
        assert first["jti"] != second["jti"]

    def test_error_status_returned(self, build_invoker) -> None:
        invoker, _ = build_invoker(lambda request: httpx.Response(403, json={"errorCode": "E0000006"}))
        response = invoker.delete("/api/v1/users/00u1")
        assert response.status_code == 403

    def test_requires_token(self, build_invoker) -> None:
        invoker, transport = build_invoker(token_cache=TokenCache())
        with pytest.raises(NotAuthenticatedError):
            invoker.get("/api/v1/users")
        assert transport.requests == []

    def test_transport_error(self, build_invoker) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        invoker, _ = build_invoker(handler)
        with pytest.raises(NetworkError, match="timed out"):
            invoker.put("/api/v1/users/00u1", json_body={})

    def test_resolve(self, build_invoker) -> None:
        invoker, _ = build_invoker()
        assert invoker.resolve("/api/v1/users") == f"{ORG_URL}/api/v1/users"
