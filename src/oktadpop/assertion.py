"""Private-key JWT client assertions (:rfc:`7523`).

The service app authenticates to the token endpoint with a short-lived JWT
signed by its registered key instead of a client secret.
"""

from __future__ import annotations

from typing import Any

from oktadpop.dpop import new_jti
from oktadpop.exceptions import SigningError
from oktadpop.keys import KeyMaterial, KeyPurpose
from oktadpop.models import ServiceIdentity
from oktadpop.signing import JwtSigner, SigningOptions

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
CLIENT_ASSERTION_LIFETIME = 3600


class ClientAssertionBuilder:
    """Build the ``client_assertion`` sent with each token request.

    Every call produces a new token with a fresh ``jti``; assertions are
    never cached.
    """

    def __init__(
        self,
        identity: ServiceIdentity,
        keys: KeyMaterial,
        signer: JwtSigner,
    ) -> None:
        self._identity = identity
        self._keys = keys
        self._signer = signer

    def build(self) -> str:
        key = self._keys.client_assertion_key()
        if key.purpose is not KeyPurpose.CLIENT_ASSERTION:
            raise SigningError(
                f"Refusing to sign a client assertion with a {key.purpose.value} key"
            )

        headers: dict[str, Any] = {}
        if key.kid:
            headers["kid"] = key.kid

        options = SigningOptions(
            expires_in=CLIENT_ASSERTION_LIFETIME,
            algorithm=key.algorithm,
            audience=self._identity.token_endpoint,
            issuer=self._identity.client_id,
            subject=self._identity.client_id,
            header_overrides=headers,
        )
        return self._signer.sign({"jti": new_jti()}, key, options)
