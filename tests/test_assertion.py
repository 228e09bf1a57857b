"""Tests for private-key JWT client assertions."""

from __future__ import annotations

import json

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from oktadpop.assertion import CLIENT_ASSERTION_LIFETIME, ClientAssertionBuilder
from oktadpop.exceptions import SigningError
from oktadpop.keys import KeyMaterial, KeyPurpose, SigningKey
from oktadpop.models import KeySource, ServiceIdentity
from oktadpop.signing import JwtSigner


FIXED_NOW = 1_700_000_000
TOKEN_URL = "https://example.okta.com/oauth2/v1/token"


@pytest.fixture
def builder(
    identity: ServiceIdentity, key_material: KeyMaterial, signer: JwtSigner
) -> ClientAssertionBuilder:
    return ClientAssertionBuilder(identity, key_material, signer)


class TestClientAssertionBuilder:
    def test_claims_verify_with_client_key(
        self, builder: ClientAssertionBuilder, cc_private_key: rsa.RSAPrivateKey
    ) -> None:
        assertion = builder.build()
        claims = jwt.decode(
            assertion,
            cc_private_key.public_key(),
            algorithms=["RS256"],
            audience=TOKEN_URL,
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["aud"] == TOKEN_URL
        assert claims["iss"] == "0oa-test-client"
        assert claims["sub"] == "0oa-test-client"
        assert claims["iat"] == FIXED_NOW
        assert claims["exp"] == FIXED_NOW + CLIENT_ASSERTION_LIFETIME
        assert len(claims["jti"]) == 64

    def test_not_signed_with_dpop_key(
        self, builder: ClientAssertionBuilder, dpop_private_key: rsa.RSAPrivateKey
    ) -> None:
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(
                builder.build(),
                dpop_private_key.public_key(),
                algorithms=["RS256"],
                options={"verify_exp": False, "verify_iat": False, "verify_aud": False},
            )

    def test_header(self, builder: ClientAssertionBuilder) -> None:
        header = jwt.get_unverified_header(builder.build())
        assert header == {"typ": "JWT", "alg": "RS256"}

    def test_kid_from_jwk(
        self,
        identity: ServiceIdentity,
        signer: JwtSigner,
        cc_private_key: rsa.RSAPrivateKey,
        dpop_private_pem: str,
    ) -> None:
        jwk = RSAAlgorithm.to_jwk(cc_private_key, as_dict=True)
        jwk["kid"] = "cc-kid"
        material = KeyMaterial(KeySource(value=json.dumps(jwk)), KeySource(value=dpop_private_pem))
        assertion = ClientAssertionBuilder(identity, material, signer).build()
        assert jwt.get_unverified_header(assertion)["kid"] == "cc-kid"

    def test_fresh_jti_each_call(self, builder: ClientAssertionBuilder) -> None:
        options = {"verify_signature": False}
        first = jwt.decode(builder.build(), options=options)
        second = jwt.decode(builder.build(), options=options)
        assert first["jti"] != second["jti"]

    def test_refuses_dpop_key(
        self,
        identity: ServiceIdentity,
        key_material: KeyMaterial,
        signer: JwtSigner,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        dpop_key = key_material.dpop_key_pair().private_key
        assert dpop_key.purpose is KeyPurpose.DPOP
        monkeypatch.setattr(key_material, "client_assertion_key", lambda: dpop_key)
        with pytest.raises(SigningError, match="dpop key"):
            ClientAssertionBuilder(identity, key_material, signer).build()

    def test_signing_key_algorithm_respected(
        self,
        identity: ServiceIdentity,
        key_material: KeyMaterial,
        signer: JwtSigner,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        key = key_material.client_assertion_key()
        es_key = SigningKey(private_key=key.private_key, purpose=key.purpose, algorithm="ES256")
        monkeypatch.setattr(key_material, "client_assertion_key", lambda: es_key)
        with pytest.raises(SigningError, match="Unsupported"):
            ClientAssertionBuilder(identity, key_material, signer).build()
