"""Compact JWT signing on top of PyJWT.

:class:`JwtSigner` is the one place that turns a claims mapping and a
:class:`~oktadpop.keys.SigningKey` into a compact ``header.payload.signature``
string. Both the client assertion and every DPoP proof go through it.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

import jwt

from oktadpop.exceptions import SigningError
from oktadpop.keys import SigningKey

SUPPORTED_ALGORITHMS = ("RS256",)


@dataclass(frozen=True)
class SigningOptions:
    """Registered claims and header tweaks applied by :meth:`JwtSigner.sign`.

    Args:
        expires_in: Token lifetime in seconds; ``exp`` is ``iat + expires_in``.
        algorithm: JWS algorithm. Only ``RS256`` is supported.
        audience: Value for the ``aud`` claim.
        issuer: Value for the ``iss`` claim.
        subject: Value for the ``sub`` claim.
        header_overrides: Extra JOSE header members (e.g. ``typ``, ``jwk``).
    """

    expires_in: int
    algorithm: str = "RS256"
    audience: Optional[str] = None
    issuer: Optional[str] = None
    subject: Optional[str] = None
    header_overrides: Optional[Mapping[str, Any]] = None


class JwtSigner:
    """Produce signed compact JWTs.

    Args:
        clock: Returns the current Unix time. Injected for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def sign(
        self,
        payload: Mapping[str, Any],
        key: SigningKey,
        options: SigningOptions,
    ) -> str:
        """Sign *payload* with *key*.

        ``iat`` and ``exp`` are always set from the clock and
        ``options.expires_in``; ``aud``, ``iss`` and ``sub`` are set when
        the corresponding option is given.

        Raises:
            SigningError: If the algorithm is unsupported, does not match the
                key, or PyJWT cannot encode the token.
        """
        algorithm = options.algorithm
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise SigningError(
                f"Unsupported signing algorithm {algorithm!r}; "
                f"supported: {', '.join(SUPPORTED_ALGORITHMS)}"
            )
        if key.algorithm != algorithm:
            raise SigningError(
                f"Key for {key.purpose.value} is an {key.algorithm} key, "
                f"cannot sign with {algorithm}"
            )
        if options.expires_in <= 0:
            raise SigningError(f"expires_in must be positive, got {options.expires_in}")

        now = int(self._clock())
        claims: dict[str, Any] = dict(payload)
        claims["iat"] = now
        claims["exp"] = now + options.expires_in
        if options.audience is not None:
            claims["aud"] = options.audience
        if options.issuer is not None:
            claims["iss"] = options.issuer
        if options.subject is not None:
            claims["sub"] = options.subject

        headers: dict[str, Any] = {"typ": "JWT"}
        if options.header_overrides:
            headers.update(options.header_overrides)
        headers["alg"] = algorithm

        try:
            return jwt.encode(claims, key.private_key, algorithm=algorithm, headers=headers)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise SigningError(f"Failed to sign {key.purpose.value} JWT: {exc}") from exc
