"""Synchronous management API client with DPoP-bound tokens.

This module provides :class:`ManagementClient`, the object most callers
use. It wraps :class:`httpx.Client` and wires together:

- **Key material** -- the client-assertion key and DPoP key pair, loaded
  lazily from :class:`~oktadpop.models.Settings`.
- **Token acquisition** -- client-credentials grant with a private-key JWT
  and the DPoP nonce handshake (:class:`~oktadpop.token.TokenAcquisition`).
- **API invocation** -- per-request DPoP proofs bound to the access token
  (:class:`~oktadpop.invoker.ApiInvoker`).

See Also:
    :func:`oktadpop.config.load_settings` for building the settings from
    the environment.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

import httpx

from oktadpop.assertion import ClientAssertionBuilder
from oktadpop.config import load_settings
from oktadpop.dpop import DpopProofBuilder
from oktadpop.invoker import ApiInvoker
from oktadpop.keys import KeyMaterial
from oktadpop.models import AccessToken, Settings
from oktadpop.signing import JwtSigner
from oktadpop.token import AcquisitionState, TokenAcquisition

USERS_PATH = "/api/v1/users"


class ManagementClient:
    """Authenticate once, then call the management API.

    Must be used as a context manager so that the underlying transport is
    opened and closed. When an ``http_client`` is supplied it is used as-is
    and left open on exit.

    Args:
        settings: Identity, key sources and request settings.
        http_client: Optional pre-built transport (tests, custom proxies).
        signer: Optional JWT signer (tests inject a fixed clock).

    Example::

        with ManagementClient(load_settings()) as client:
            client.authenticate()
            response = client.call("/api/v1/users", "GET")
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        signer: Optional[JwtSigner] = None,
    ) -> None:
        self._settings = settings
        self._external_client = http_client
        self._client: Optional[httpx.Client] = None
        self._keys = KeyMaterial(
            settings.client_assertion_key,
            settings.dpop_private_key,
            settings.dpop_public_key,
        )
        self._signer = signer or JwtSigner()
        self._assertions = ClientAssertionBuilder(settings.identity, self._keys, self._signer)
        self._proofs = DpopProofBuilder(self._keys, self._signer)
        self._acquisition: Optional[TokenAcquisition] = None
        self._invoker: Optional[ApiInvoker] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ManagementClient:
        """Build a client from ``OKTA_*`` environment variables.

        Raises:
            ConfigError: If the environment is incomplete or malformed.
        """
        return cls(load_settings(environ))

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ManagementClient:
        if self._external_client is not None:
            self._client = self._external_client
        else:
            config = self._settings.request
            self._client = httpx.Client(
                timeout=config.timeout,
                verify=config.verify_ssl,
                follow_redirects=False,
            )
        self._acquisition = TokenAcquisition(
            self._settings.identity,
            self._assertions,
            self._proofs,
            self._client,
            expiry_skew=self._settings.request.expiry_skew,
        )
        self._invoker = ApiInvoker(
            self._settings.identity,
            self._proofs,
            self._acquisition.cache,
            self._client,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client is not None and self._external_client is None:
            self._client.close()
        self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def keys(self) -> KeyMaterial:
        return self._keys

    @property
    def proofs(self) -> DpopProofBuilder:
        return self._proofs

    @property
    def state(self) -> AcquisitionState:
        return self._require_acquisition().state

    @property
    def token(self) -> Optional[AccessToken]:
        return self._require_acquisition().token

    def authenticate(self) -> Optional[str]:
        """Obtain (or reuse) the access token. See :meth:`TokenAcquisition.authenticate`."""
        return self._require_acquisition().authenticate()

    def call(
        self,
        relative_uri: str,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a management API request. See :meth:`ApiInvoker.call`."""
        assert self._invoker is not None, "Client not initialised -- use as context manager"
        return self._invoker.call(relative_uri, method, headers=headers, body=body, **kwargs)

    def list_users(self, limit: Optional[int] = None) -> httpx.Response:
        """``GET /api/v1/users``, optionally capped at *limit* results."""
        params = {"limit": limit} if limit is not None else None
        return self.call(USERS_PATH, "GET", params=params)

    def _require_acquisition(self) -> TokenAcquisition:
        assert self._acquisition is not None, "Client not initialised -- use as context manager"
        return self._acquisition
