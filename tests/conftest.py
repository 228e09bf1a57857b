"""Shared test fixtures for oktadpop.

Provides RSA keys (generated once per session), settings built from
them, a recording mock transport for the token endpoint and management
API, and output-state management. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from oktadpop.keys import KeyMaterial
from oktadpop.models import KeySource, RequestConfig, ServiceIdentity, Settings
from oktadpop.output import OutputFormat, OutputManager, reset_output, set_output
from oktadpop.signing import JwtSigner


ORG_URL = "https://example.okta.com"
CLIENT_ID = "0oa-test-client"
SCOPES = ["okta.users.read", "okta.groups.read"]
TOKEN_URL = f"{ORG_URL}/oauth2/v1/token"
FIXED_NOW = 1_700_000_000.0


def _pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def _public_pem(key: rsa.RSAPrivateKey) -> str:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test from an empty directory so no stray .env is picked up."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def cc_private_key() -> rsa.RSAPrivateKey:
    """Client-assertion RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def dpop_private_key() -> rsa.RSAPrivateKey:
    """DPoP RSA key, distinct from the client-assertion key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def cc_private_pem(cc_private_key: rsa.RSAPrivateKey) -> str:
    return _pem(cc_private_key)


@pytest.fixture(scope="session")
def dpop_private_pem(dpop_private_key: rsa.RSAPrivateKey) -> str:
    return _pem(dpop_private_key)


@pytest.fixture(scope="session")
def dpop_public_pem(dpop_private_key: rsa.RSAPrivateKey) -> str:
    return _public_pem(dpop_private_key)


@pytest.fixture
def key_material(cc_private_pem: str, dpop_private_pem: str) -> KeyMaterial:
    return KeyMaterial(KeySource(value=cc_private_pem), KeySource(value=dpop_private_pem))


@pytest.fixture
def signer() -> JwtSigner:
    """Signer with a frozen clock."""
    return JwtSigner(clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# Settings / environment
# ---------------------------------------------------------------------------


@pytest.fixture
def identity() -> ServiceIdentity:
    return ServiceIdentity(domain=ORG_URL, client_id=CLIENT_ID, scopes=SCOPES)


@pytest.fixture
def settings(identity: ServiceIdentity, cc_private_pem: str, dpop_private_pem: str) -> Settings:
    return Settings(
        identity=identity,
        client_assertion_key=KeySource(value=cc_private_pem),
        dpop_private_key=KeySource(value=dpop_private_pem),
        request=RequestConfig(timeout=5),
    )


@pytest.fixture
def okta_env(
    monkeypatch: pytest.MonkeyPatch, cc_private_pem: str, dpop_private_pem: str
) -> dict[str, str]:
    """Set a complete ``OKTA_*`` environment and return it."""
    env = {
        "OKTA_ORG_URL": ORG_URL,
        "OKTA_CLIENT_ID": CLIENT_ID,
        "OKTA_SCOPES": " ".join(SCOPES),
        "OKTA_CC_PRIVATE_KEY": cc_private_pem,
        "OKTA_DPOP_PRIVATE_KEY": dpop_private_pem,
    }
    for name in (
        "OKTA_CC_PRIVATE_KEY_FILE",
        "OKTA_DPOP_PRIVATE_KEY_FILE",
        "OKTA_DPOP_PUBLIC_KEY",
        "OKTA_DPOP_PUBLIC_KEY_FILE",
        "OKTA_HTTP_TIMEOUT",
        "OKTA_VERIFY_SSL",
    ):
        monkeypatch.delenv(name, raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it was given."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    """Factory for :class:`RecordingTransport` instances."""
    return RecordingTransport
