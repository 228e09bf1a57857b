"""Canonical Pydantic models shared across all oktadpop modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- resolved once at process start by
:func:`oktadpop.config.load_settings`:
    :class:`ServiceIdentity`, :class:`KeySource`, :class:`RequestConfig`,
    and :class:`Settings`.

**Token models** -- produced while talking to the authorization server:
    :class:`TokenResponse` and :class:`AccessToken`.

All models use Pydantic v2. Configuration models are frozen so that a
loaded configuration cannot drift while requests are in flight.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TOKEN_ENDPOINT_PATH = "/oauth2/v1/token"


# --- Configuration ---


class ServiceIdentity(BaseModel):
    """Who the service app is and what it asks for.

    Example::

        ServiceIdentity(
            domain="https://example.okta.com",
            client_id="0oa1b2c3d4",
            scopes=["okta.users.read"],
        )
    """

    model_config = ConfigDict(frozen=True)

    domain: str = Field(description="Okta org URL, e.g. https://example.okta.com")
    client_id: str = Field(description="Client ID of the API service app")
    scopes: list[str] = Field(
        default_factory=list, description="Scopes requested, in order"
    )

    @field_validator("domain")
    @classmethod
    def _normalise_domain(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("https://", "http://")):
            raise ValueError(f"domain must be an absolute http(s) URL, got {value!r}")
        return value

    @field_validator("client_id")
    @classmethod
    def _require_client_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client_id must not be empty")
        return value

    @property
    def token_endpoint(self) -> str:
        """The fixed client-credentials token endpoint for this org."""
        return f"{self.domain}{TOKEN_ENDPOINT_PATH}"

    @property
    def scope(self) -> str:
        """Scopes joined into the space-delimited form the token endpoint expects."""
        return " ".join(self.scopes)


class KeySource(BaseModel):
    """Where a key comes from: an in-memory value or a file path, never both.

    ``value`` holds PEM text or a JWK serialised as JSON. ``path`` points at
    a file holding either of those.
    """

    model_config = ConfigDict(frozen=True)

    value: Optional[str] = Field(default=None, repr=False)
    path: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> KeySource:
        if bool(self.value) == bool(self.path):
            raise ValueError("exactly one of 'value' or 'path' must be set")
        return self

    def describe(self) -> str:
        """Return a description safe to print (never the key itself)."""
        if self.path:
            return f"file:{self.path}"
        return "<in-memory>"


class RequestConfig(BaseModel):
    """HTTP request settings applied to every outbound call."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    expiry_skew: int = Field(
        default=30,
        description="Re-acquire a token this many seconds before it expires",
    )


class Settings(BaseModel):
    """Everything needed to authenticate and call the management API."""

    model_config = ConfigDict(frozen=True)

    identity: ServiceIdentity
    client_assertion_key: KeySource
    dpop_private_key: KeySource
    dpop_public_key: Optional[KeySource] = None
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Tokens ---


class TokenResponse(BaseModel):
    """Token endpoint response body (:rfc:`6749` section 5).

    Covers both the success fields (section 5.1) and the error fields
    (section 5.2). Unknown keys are kept in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None

    error: Optional[str] = None
    error_description: Optional[str] = None

    def is_success(self) -> bool:
        return self.error is None and bool(self.access_token)

    def to_access_token(self, now: Optional[float] = None) -> AccessToken:
        """Convert a successful response to an :class:`AccessToken`.

        Raises:
            ValueError: If the response carries no access token.
        """
        if not self.access_token:
            raise ValueError("Cannot convert a response without access_token")
        issued = time.time() if now is None else now
        expires_at = issued + self.expires_in if self.expires_in is not None else None
        return AccessToken(
            value=self.access_token,
            token_type=self.token_type or "DPoP",
            expires_at=expires_at,
        )


class AccessToken(BaseModel):
    """A sender-constrained access token held in memory."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(repr=False)
    token_type: str = "DPoP"
    expires_at: Optional[float] = Field(
        default=None, description="Unix timestamp; None means no known expiry"
    )

    def is_fresh(self, skew: float = 0.0, now: Optional[float] = None) -> bool:
        """Whether the token can still be used ``skew`` seconds from now."""
        if self.expires_at is None:
            return True
        current = time.time() if now is None else now
        return current < self.expires_at - skew

    def describe(self) -> dict[str, Any]:
        """Summary safe for display (value truncated)."""
        return {
            "token_type": self.token_type,
            "expires_at": self.expires_at,
            "value": f"{self.value[:12]}...",
        }
