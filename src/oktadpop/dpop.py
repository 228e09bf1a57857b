"""DPoP proof construction (:rfc:`9449`).

A DPoP proof is a JWT signed with the client's DPoP key that binds one
HTTP request (method and URI) to that key. A new proof is built for every
outbound request: the initial token request, the nonce retry, and each
management API call. Proofs sent to the resource server also carry
``ath``, the hash of the access token they accompany.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from oktadpop.exceptions import SigningError
from oktadpop.keys import KeyMaterial, KeyPurpose
from oktadpop.signing import JwtSigner, SigningOptions

DPOP_JWT_TYPE = "dpop+jwt"
DPOP_PROOF_LIFETIME = 300


def new_jti() -> str:
    """Return a fresh 256-bit random identifier, hex encoded."""
    return secrets.token_hex(32)


def generate_ath(access_token: str) -> str:
    """Hash an access token for the ``ath`` claim.

    SHA-256 over the UTF-8 bytes, base64 encoded, then made URL-safe with
    padding removed.
    """
    digest = hashlib.sha256(access_token.encode("utf-8")).digest()
    encoded = base64.b64encode(digest).decode("ascii")
    return encoded.replace("/", "_").replace("+", "-").replace("=", "")


def normalise_htu(uri: str) -> str:
    """Drop query and fragment from *uri*; ``htu`` covers scheme, authority and path."""
    parts = urlsplit(uri)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class DpopProofBuilder:
    """Build DPoP proofs with the configured key pair.

    Stateless apart from reading the key pair; every :meth:`build` call is
    independent.

    Example::

        builder = DpopProofBuilder(keys, JwtSigner())
        proof = builder.build("POST", "https://example.okta.com/oauth2/v1/token")
    """

    def __init__(self, keys: KeyMaterial, signer: JwtSigner) -> None:
        self._keys = keys
        self._signer = signer

    def build(
        self,
        method: str,
        uri: str,
        *,
        nonce: Optional[str] = None,
        access_token: Optional[str] = None,
        additional_claims: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return a signed proof for ``method`` ``uri``.

        Args:
            method: HTTP method of the request the proof accompanies.
            uri: Absolute request URI.
            nonce: Server-issued nonce to echo, if one was demanded.
            access_token: When given, its hash is added as ``ath``.
            additional_claims: Extra claims merged last.

        Raises:
            SigningError: If the key pair is not a DPoP key or signing fails.
        """
        pair = self._keys.dpop_key_pair()
        key = pair.private_key
        if key.purpose is not KeyPurpose.DPOP:
            raise SigningError(f"Refusing to sign a DPoP proof with a {key.purpose.value} key")

        claims: dict[str, Any] = {
            "htm": method.upper(),
            "htu": normalise_htu(uri),
            "jti": new_jti(),
        }
        if nonce is not None:
            claims["nonce"] = nonce
        if access_token is not None:
            claims["ath"] = generate_ath(access_token)
        if additional_claims:
            claims.update(additional_claims)

        options = SigningOptions(
            expires_in=DPOP_PROOF_LIFETIME,
            algorithm=key.algorithm,
            header_overrides={
                "typ": DPOP_JWT_TYPE,
                "alg": key.algorithm,
                "jwk": dict(pair.public_jwk),
            },
        )
        return self._signer.sign(claims, key, options)
