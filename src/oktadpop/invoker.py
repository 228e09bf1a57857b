"""Management API requests with DPoP-bound authorization.

:class:`ApiInvoker` sends requests to the org's management API. Each
request carries ``Authorization: DPoP <token>`` and a freshly built DPoP
proof whose ``ath`` claim binds it to that token. Responses are returned
as-is; interpreting status codes is up to the caller.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import httpx

from oktadpop.dpop import DpopProofBuilder
from oktadpop.exceptions import NetworkError, NotAuthenticatedError
from oktadpop.models import ServiceIdentity
from oktadpop.output import get_output
from oktadpop.token import TokenCache


class ApiInvoker:
    """Attach DPoP authorization to outbound management API calls.

    The invoker only reads the token cache; it never authenticates on its
    own. Call :meth:`~oktadpop.token.TokenAcquisition.authenticate` first.

    Args:
        identity: Provides the org domain that relative URIs resolve against.
        proof_builder: Builds the per-request DPoP proof.
        cache: Token cache shared with the token acquisition.
        http_client: Transport used for API requests.

    Example::

        invoker = ApiInvoker(identity, proofs, acquisition.cache, http)
        response = invoker.get("/api/v1/users")
    """

    def __init__(
        self,
        identity: ServiceIdentity,
        proof_builder: DpopProofBuilder,
        cache: TokenCache,
        http_client: httpx.Client,
    ) -> None:
        self._identity = identity
        self._proof_builder = proof_builder
        self._cache = cache
        self._http_client = http_client

    def resolve(self, relative_uri: str) -> str:
        """Return the absolute URL for *relative_uri* on the org domain."""
        return f"{self._identity.domain}{relative_uri}"

    def call(
        self,
        relative_uri: str,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
        json_body: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one management API request.

        The proof's ``htu`` claim is the resolved URL without its query
        string or fragment (:rfc:`9449` section 4.2), so
        ``/api/v1/users?limit=5`` and ``params={"limit": 5}`` both yield
        ``htu == "https://<org>/api/v1/users"``.

        Args:
            relative_uri: Path on the org domain, e.g. ``/api/v1/users``.
            method: HTTP method.
            headers: Extra headers. Applied after the fixed ``Accept``,
                ``Authorization`` and ``DPoP`` headers, so they win on
                collision regardless of the case of the header name.
            body: Raw request body.
            json_body: JSON-serialisable body; ignored when *body* is given.
            params: Query parameters.

        Returns:
            The :class:`httpx.Response`, whatever its status.

        Raises:
            NotAuthenticatedError: If no access token has been obtained.
            NetworkError: If the request cannot be sent.
        """
        token = self._cache.get()
        if token is None:
            raise NotAuthenticatedError(
                "No access token available; call authenticate() before making API calls"
            )

        method = method.upper()
        url = self.resolve(relative_uri)
        proof = self._proof_builder.build(method, url, access_token=token.value)

        request_headers = httpx.Headers(
            {
                "Accept": "application/json",
                "Authorization": f"DPoP {token.value}",
                "DPoP": proof,
            }
        )
        # Header names compare case-insensitively, so "accept" replaces "Accept".
        request_headers.update(headers or {})

        kwargs: dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": request_headers,
        }
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["content"] = body
        elif json_body is not None:
            kwargs["json"] = json_body

        get_output().debug(f"{method} {url}")
        try:
            response = self._http_client.request(**kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc
        get_output().debug(f"{method} {url} -> {response.status_code}")
        return response

    def get(self, relative_uri: str, **kwargs: Any) -> httpx.Response:
        return self.call(relative_uri, "GET", **kwargs)

    def post(self, relative_uri: str, **kwargs: Any) -> httpx.Response:
        return self.call(relative_uri, "POST", **kwargs)

    def put(self, relative_uri: str, **kwargs: Any) -> httpx.Response:
        return self.call(relative_uri, "PUT", **kwargs)

    def delete(self, relative_uri: str, **kwargs: Any) -> httpx.Response:
        return self.call(relative_uri, "DELETE", **kwargs)
