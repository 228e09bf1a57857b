"""Signing key loading for client assertions and DPoP proofs.

Two RSA keys are involved and they must never be swapped:

- the **client-assertion key**, registered with the service app and used
  to sign the private-key JWT presented to the token endpoint;
- the **DPoP key pair**, whose public half travels inside every DPoP proof
  header and to which the issued access token is bound.

Each :class:`SigningKey` records its :class:`KeyPurpose`; the builders in
:mod:`oktadpop.assertion` and :mod:`oktadpop.dpop` refuse a key with the
wrong purpose. Keys can be PEM text or RSA JWKs (JSON), supplied inline or
from a file. :class:`KeyMaterial` loads each key on first use, exactly
once.
"""

from __future__ import annotations

import enum
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm
from jwt.exceptions import InvalidKeyError

from oktadpop.exceptions import KeyFormatError, KeyLoadError
from oktadpop.models import KeySource

DEFAULT_ALGORITHM = "RS256"

# Members stripped when a JWK is published as a DPoP public key.
_PRIVATE_JWK_MEMBERS = frozenset({"d", "p", "q", "dp", "dq", "qi", "oth", "key_ops"})


class KeyPurpose(str, enum.Enum):
    CLIENT_ASSERTION = "client_assertion"
    DPOP = "dpop"


@dataclass(frozen=True)
class SigningKey:
    """An RSA private key tagged with what it may sign."""

    private_key: rsa.RSAPrivateKey = field(repr=False)
    purpose: KeyPurpose
    algorithm: str = DEFAULT_ALGORITHM
    kid: Optional[str] = None


@dataclass(frozen=True)
class DpopKeyPair:
    """The DPoP signing key plus the public JWK embedded in each proof."""

    private_key: SigningKey
    public_jwk: dict[str, Any]


def _read_source(source: KeySource) -> str:
    """Return the raw text of *source*, reading the file if necessary."""
    if source.value:
        return source.value
    assert source.path is not None
    path = Path(source.path).expanduser()
    if not path.is_file():
        raise KeyLoadError(f"Key file not found: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise KeyLoadError(f"Cannot read key file {path}: {exc}") from exc


def _parse_jwk(text: str, source: KeySource) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise KeyFormatError(f"Key {source.describe()} is not valid JWK JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise KeyFormatError(f"Key {source.describe()} is not a JWK object")
    if data.get("kty") != "RSA":
        raise KeyFormatError(
            f"Key {source.describe()} has kty={data.get('kty')!r}; only RSA keys are supported"
        )
    return data


def _looks_like_json(text: str) -> bool:
    return text.lstrip().startswith("{")


def load_private_key(source: KeySource) -> tuple[rsa.RSAPrivateKey, Optional[str]]:
    """Load an RSA private key from PEM or JWK text.

    Args:
        source: Where the key lives.

    Returns:
        A ``(private_key, kid)`` tuple. ``kid`` comes from the JWK when
        present, otherwise ``None``.

    Raises:
        KeyLoadError: If the file is missing or unreadable.
        KeyFormatError: If the content is not an RSA private key.
    """
    text = _read_source(source)
    kid: Optional[str] = None

    if _looks_like_json(text):
        jwk = _parse_jwk(text, source)
        if "d" not in jwk:
            raise KeyFormatError(f"JWK {source.describe()} has no private members")
        try:
            key = RSAAlgorithm.from_jwk(jwk)
        except (InvalidKeyError, ValueError, KeyError) as exc:
            raise KeyFormatError(f"Invalid RSA JWK {source.describe()}: {exc}") from exc
        kid = jwk.get("kid")
    else:
        try:
            key = serialization.load_pem_private_key(text.encode("utf-8"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyFormatError(
                f"Key {source.describe()} is not an unencrypted PEM private key: {exc}"
            ) from exc

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyFormatError(f"Key {source.describe()} is not an RSA private key")
    return key, kid


def public_jwk_from_key(public_key: rsa.RSAPublicKey) -> dict[str, Any]:
    """Serialise an RSA public key as a JWK dict (``kty``, ``n``, ``e``)."""
    jwk = RSAAlgorithm.to_jwk(public_key, as_dict=True)
    return {"kty": jwk["kty"], "n": jwk["n"], "e": jwk["e"]}


def load_public_jwk(source: KeySource) -> dict[str, Any]:
    """Load an RSA public key as a JWK dict containing public members only.

    Accepts a PEM public key, an RSA JWK (private members are stripped), or
    a PEM private key (its public half is used).

    Raises:
        KeyLoadError: If the file is missing or unreadable.
        KeyFormatError: If the content is not an RSA key.
    """
    text = _read_source(source)

    if _looks_like_json(text):
        jwk = _parse_jwk(text, source)
        if "n" not in jwk or "e" not in jwk:
            raise KeyFormatError(f"JWK {source.describe()} is missing 'n' or 'e'")
        return {name: value for name, value in jwk.items() if name not in _PRIVATE_JWK_MEMBERS}

    data = text.encode("utf-8")
    try:
        public_key = serialization.load_pem_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        private_key, _ = load_private_key(source)
        public_key = private_key.public_key()

    if not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyFormatError(f"Key {source.describe()} is not an RSA public key")
    return public_jwk_from_key(public_key)


def _check_pair(private_key: rsa.RSAPrivateKey, public_jwk: dict[str, Any]) -> None:
    """Raise if *public_jwk* is not the public half of *private_key*."""
    derived = public_jwk_from_key(private_key.public_key())
    if derived["n"] != public_jwk.get("n") or derived["e"] != public_jwk.get("e"):
        raise KeyFormatError("DPoP public key does not match the DPoP private key")


class KeyMaterial:
    """Loads and holds the client-assertion key and the DPoP key pair.

    Each key is read on first use and cached; concurrent first uses load it
    only once.

    Args:
        client_assertion_source: Source of the private-key JWT signing key.
        dpop_private_source: Source of the DPoP private key.
        dpop_public_source: Optional source of the DPoP public key. Derived
            from the private key when omitted.

    Example::

        keys = KeyMaterial(KeySource(path="cc.pem"), KeySource(path="dpop.pem"))
        keys.dpop_key_pair().public_jwk["kty"]   # "RSA"
    """

    def __init__(
        self,
        client_assertion_source: KeySource,
        dpop_private_source: KeySource,
        dpop_public_source: Optional[KeySource] = None,
    ) -> None:
        self._client_assertion_source = client_assertion_source
        self._dpop_private_source = dpop_private_source
        self._dpop_public_source = dpop_public_source
        self._lock = threading.Lock()
        self._client_assertion_key: Optional[SigningKey] = None
        self._dpop_key_pair: Optional[DpopKeyPair] = None

    def client_assertion_key(self) -> SigningKey:
        """Return the client-assertion signing key, loading it on first use."""
        if self._client_assertion_key is None:
            with self._lock:
                if self._client_assertion_key is None:
                    private_key, kid = load_private_key(self._client_assertion_source)
                    self._client_assertion_key = SigningKey(
                        private_key=private_key,
                        purpose=KeyPurpose.CLIENT_ASSERTION,
                        kid=kid,
                    )
        return self._client_assertion_key

    def dpop_key_pair(self) -> DpopKeyPair:
        """Return the DPoP key pair, loading it on first use."""
        if self._dpop_key_pair is None:
            with self._lock:
                if self._dpop_key_pair is None:
                    self._dpop_key_pair = self._load_dpop_key_pair()
        return self._dpop_key_pair

    def _load_dpop_key_pair(self) -> DpopKeyPair:
        private_key, kid = load_private_key(self._dpop_private_source)
        if self._dpop_public_source is not None:
            public_jwk = load_public_jwk(self._dpop_public_source)
            _check_pair(private_key, public_jwk)
        else:
            public_jwk = public_jwk_from_key(private_key.public_key())
            if kid:
                public_jwk["kid"] = kid
        return DpopKeyPair(
            private_key=SigningKey(private_key=private_key, purpose=KeyPurpose.DPOP, kid=kid),
            public_jwk=public_jwk,
        )
