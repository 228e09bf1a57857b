"""Config commands -- view and validate the environment configuration.

All configuration comes from ``OKTA_*`` environment variables (see
:mod:`oktadpop.config`). ``config show`` prints what was resolved with
key material masked; ``config check`` additionally loads every key, so
that a bad PEM or a mismatched DPoP key pair is caught before the first
token request.
"""

from __future__ import annotations

from typing import Any

import typer

from oktadpop.config import load_settings
from oktadpop.keys import KeyMaterial
from oktadpop.models import Settings
from oktadpop.output import format_response, info, success, suggest


config_app = typer.Typer(no_args_is_help=True)


def settings_summary(settings: Settings) -> dict[str, Any]:
    """Flatten *settings* for display. Key sources are described, never printed."""
    identity = settings.identity
    public = settings.dpop_public_key
    return {
        "org_url": identity.domain,
        "client_id": identity.client_id,
        "scopes": identity.scope,
        "token_endpoint": identity.token_endpoint,
        "client_assertion_key": settings.client_assertion_key.describe(),
        "dpop_private_key": settings.dpop_private_key.describe(),
        "dpop_public_key": public.describe() if public is not None else "<derived>",
        "timeout": settings.request.timeout,
        "verify_ssl": settings.request.verify_ssl,
    }


@config_app.command("show")
def config_show() -> None:
    """Show the resolved configuration.

    Example::

        oktadpop config show
        oktadpop config show --json
    """
    format_response(settings_summary(load_settings()))


@config_app.command("check")
def config_check() -> None:
    """Validate the configuration and load every key.

    Prints the DPoP public JWK on success; it is the key the org binds
    issued tokens to.

    Raises:
        ConfigError: If an environment variable is missing or malformed.
        KeyMaterialError: If a key cannot be read or parsed, or the DPoP
            public key does not match the private key.
    """
    settings = load_settings()
    info(f"Client: {settings.identity.client_id} at {settings.identity.domain}")

    keys = KeyMaterial(
        settings.client_assertion_key,
        settings.dpop_private_key,
        settings.dpop_public_key,
    )
    keys.client_assertion_key()
    pair = keys.dpop_key_pair()

    success("Configuration OK: client-assertion key and DPoP key pair loaded")
    format_response(pair.public_jwk)
    suggest("Run 'oktadpop token get' to test the token exchange")
