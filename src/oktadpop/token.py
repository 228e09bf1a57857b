"""Client-credentials token acquisition with DPoP nonce handling.

:class:`TokenAcquisition` obtains a DPoP-bound access token from the org's
token endpoint using a private-key JWT client assertion. Authorization
servers may demand a server-issued nonce in the DPoP proof: the first
request is then answered with ``400 {"error": "use_dpop_nonce"}`` and a
``DPoP-Nonce`` header, and the client retries once with a new assertion
and a new proof carrying that nonce.

State transitions::

    UNAUTHENTICATED -> AWAITING_FIRST_RESPONSE -> AUTHENTICATED
                                               -> NONCE_CHALLENGED
                                                  -> AWAITING_RETRY_RESPONSE
                                                     -> AUTHENTICATED | FAILED
                                               -> FAILED

The obtained token lives in a :class:`TokenCache` that
:class:`~oktadpop.invoker.ApiInvoker` reads from.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from oktadpop.assertion import CLIENT_ASSERTION_TYPE, ClientAssertionBuilder
from oktadpop.dpop import DpopProofBuilder
from oktadpop.exceptions import AuthServerError, NetworkError, ProtocolError
from oktadpop.models import AccessToken, ServiceIdentity, TokenResponse
from oktadpop.output import get_output

USE_DPOP_NONCE = "use_dpop_nonce"
DPOP_NONCE_HEADER = "DPoP-Nonce"


class AcquisitionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_FIRST_RESPONSE = "awaiting_first_response"
    NONCE_CHALLENGED = "nonce_challenged"
    AWAITING_RETRY_RESPONSE = "awaiting_retry_response"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class TokenCache:
    """Thread-safe holder for the current access token."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._token: Optional[AccessToken] = None

    def get(self) -> Optional[AccessToken]:
        with self._lock:
            return self._token

    def store(self, token: AccessToken) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        with self._lock:
            self._token = None


def _body_for_log(response: httpx.Response) -> Any:
    """Return the JSON body when there is one, else the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_nonce_challenge(response: httpx.Response) -> bool:
    if response.status_code != 400:
        return False
    body = _body_for_log(response)
    return isinstance(body, dict) and body.get("error") == USE_DPOP_NONCE


def _shorten(value: str, keep: int = 24) -> str:
    return value if len(value) <= keep else f"{value[:keep]}..."


class TokenAcquisition:
    """Obtain and cache a DPoP-bound access token.

    :meth:`authenticate` is single-flight: concurrent callers queue on a
    lock and, once the first acquisition finishes, find the token already
    cached instead of sending their own token requests.

    Args:
        identity: Domain, client ID and scopes of the service app.
        assertion_builder: Produces a fresh client assertion per request.
        proof_builder: Produces a fresh DPoP proof per request.
        http_client: Transport used for the token endpoint.
        cache: Where the token is kept. A private cache is created when
            omitted.
        expiry_skew: Seconds before ``expires_at`` at which a cached token
            is considered stale.
        clock: Returns the current Unix time. Injected for tests.
    """

    def __init__(
        self,
        identity: ServiceIdentity,
        assertion_builder: ClientAssertionBuilder,
        proof_builder: DpopProofBuilder,
        http_client: httpx.Client,
        cache: Optional[TokenCache] = None,
        expiry_skew: float = 30.0,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._identity = identity
        self._assertion_builder = assertion_builder
        self._proof_builder = proof_builder
        self._http_client = http_client
        self._cache = cache if cache is not None else TokenCache()
        self._expiry_skew = expiry_skew
        self._clock = clock
        self._lock = threading.Lock()
        self._state = AcquisitionState.UNAUTHENTICATED

    @property
    def state(self) -> AcquisitionState:
        return self._state

    @property
    def cache(self) -> TokenCache:
        return self._cache

    @property
    def token(self) -> Optional[AccessToken]:
        return self._cache.get()

    def authenticate(self) -> Optional[str]:
        """Return a usable access token, requesting one if needed.

        Returns:
            The access token string, or ``None`` when the authorization
            server refused to issue one (the refusal is reported on stderr).

        Raises:
            NetworkError: If the token endpoint cannot be reached.
            ProtocolError: If a response is not valid JSON, a success
                response lacks ``access_token`` or has a non-positive
                ``expires_in``, or a nonce challenge comes without a
                ``DPoP-Nonce`` header.
            KeyMaterialError: If a signing key cannot be loaded.
            SigningError: If a JWT cannot be signed.
        """
        with self._lock:
            cached = self._fresh_token()
            if cached is not None:
                get_output().debug("Using cached access token")
                return cached.value

            output = get_output()
            output.info("Valid access token not found. Retrieving new token...")
            try:
                token = self._acquire()
            except AuthServerError as exc:
                self._state = AcquisitionState.FAILED
                output.error(f"{exc}: {exc.body}")
                return None
            except Exception:
                self._state = AcquisitionState.FAILED
                raise

            self._cache.store(token)
            self._state = AcquisitionState.AUTHENTICATED
            output.success("Successfully retrieved access token")
            output.debug(f"Access token: {_shorten(token.value)}")
            return token.value

    def clear(self) -> None:
        """Forget the cached token so the next :meth:`authenticate` requests a new one."""
        with self._lock:
            self._cache.clear()
            self._state = AcquisitionState.UNAUTHENTICATED

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _now(self) -> Optional[float]:
        return self._clock() if self._clock is not None else None

    def _fresh_token(self) -> Optional[AccessToken]:
        token = self._cache.get()
        if token is None:
            return None
        if token.is_fresh(self._expiry_skew, now=self._now()):
            return token
        get_output().debug("Cached access token is about to expire")
        return None

    def _acquire(self) -> AccessToken:
        self._state = AcquisitionState.AWAITING_FIRST_RESPONSE
        response = self._send_token_request()

        if _is_nonce_challenge(response):
            self._state = AcquisitionState.NONCE_CHALLENGED
            nonce = response.headers.get(DPOP_NONCE_HEADER)
            if not nonce:
                raise ProtocolError(
                    f"Token endpoint demanded a DPoP nonce but sent no {DPOP_NONCE_HEADER} header"
                )
            get_output().debug(f"Token endpoint requires a DPoP nonce, retrying with {nonce!r}")
            self._state = AcquisitionState.AWAITING_RETRY_RESPONSE
            response = self._send_token_request(nonce=nonce)

        return self._token_from_response(response)

    def _send_token_request(self, nonce: Optional[str] = None) -> httpx.Response:
        """POST one client-credentials request with a fresh assertion and proof."""
        endpoint = self._identity.token_endpoint
        assertion = self._assertion_builder.build()
        proof = self._proof_builder.build("POST", endpoint, nonce=nonce)

        output = get_output()
        output.debug(f"Using private key JWT: {_shorten(assertion)}")
        output.debug(f"Making token call to {endpoint}")

        try:
            return self._http_client.post(
                endpoint,
                data={
                    "grant_type": "client_credentials",
                    "scope": self._identity.scope,
                    "client_assertion_type": CLIENT_ASSERTION_TYPE,
                    "client_assertion": assertion,
                },
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                    "DPoP": proof,
                },
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Token request to {endpoint} failed: {exc}") from exc

    def _token_from_response(self, response: httpx.Response) -> AccessToken:
        if response.status_code != 200:
            body = _body_for_log(response)
            error = body.get("error") if isinstance(body, dict) else None
            detail = f" ({error})" if error else ""
            raise AuthServerError(
                f"Token request failed with status {response.status_code}{detail}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError(f"Token response is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ProtocolError("Token response is not a JSON object")

        try:
            token_response = TokenResponse(**data)
        except ValidationError as exc:
            raise ProtocolError(f"Token response has unexpected field types: {exc}") from exc
        if not token_response.is_success():
            raise ProtocolError("Token response missing 'access_token' field")
        if token_response.expires_in is not None and token_response.expires_in <= 0:
            raise ProtocolError(
                f"Token response has non-positive expires_in ({token_response.expires_in})"
            )
        if token_response.expires_in is not None and token_response.expires_in <= self._expiry_skew:
            get_output().warning(
                f"Token lifetime ({token_response.expires_in}s) is within the "
                f"{self._expiry_skew:g}s expiry skew; it will not be reused"
            )
        if token_response.token_type and token_response.token_type.lower() != "dpop":
            get_output().warning(
                f"Token endpoint issued a {token_response.token_type} token, not a DPoP-bound one"
            )
        return token_response.to_access_token(now=self._now())
