"""Token commands -- obtain access tokens and inspect DPoP proofs.

Provides the ``oktadpop token`` sub-command group:

* ``token get`` runs the full client-credentials exchange, nonce retry
  included, and prints the access token.
* ``token proof`` signs a DPoP proof locally without contacting the org,
  which is handy when debugging proofs rejected by a resource server.
"""

from __future__ import annotations

from typing import Optional

import jwt
import typer

from oktadpop.client import ManagementClient
from oktadpop.exit_codes import EXIT_AUTH_FAILURE
from oktadpop.output import format_response, print_data, warning


token_app = typer.Typer(no_args_is_help=True)


@token_app.command("get")
def token_get(
    claims: bool = typer.Option(
        False, "--claims", help="Print the token's claims (unverified) instead of the token."
    ),
) -> None:
    """Obtain a DPoP-bound access token and print it.

    Raises:
        typer.Exit: With code 3 if the token endpoint refused to issue one.

    Example::

        oktadpop token get
        oktadpop token get --claims --json
    """
    with ManagementClient.from_env() as client:
        value = client.authenticate()
        token = client.token

    if value is None or token is None:
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    if not claims:
        print_data(value)
        return

    try:
        decoded = jwt.decode(value, options={"verify_signature": False})
    except jwt.DecodeError:
        warning("Access token is opaque; it has no claims to show")
        format_response(token.describe())
        return
    format_response(
        {
            "token_type": token.token_type,
            "expires_at": token.expires_at,
            "claims": decoded,
        }
    )


@token_app.command("proof")
def token_proof(
    method: str = typer.Argument(help="HTTP method the proof is for."),
    uri: str = typer.Argument(help="Absolute URI the proof is for."),
    nonce: Optional[str] = typer.Option(
        None, "--nonce", help="Server-issued DPoP nonce to include."
    ),
    access_token: Optional[str] = typer.Option(
        None, "--access-token", help="Access token to bind the proof to (adds 'ath')."
    ),
    decode: bool = typer.Option(
        False, "--decode", help="Print the proof's header and claims instead of the JWT."
    ),
) -> None:
    """Sign a DPoP proof for METHOD URI and print it.

    Example::

        oktadpop token proof POST https://example.okta.com/oauth2/v1/token --nonce abc
    """
    client = ManagementClient.from_env()
    proof = client.proofs.build(method, uri, nonce=nonce, access_token=access_token)

    if not decode:
        print_data(proof)
        return
    format_response(
        {
            "header": jwt.get_unverified_header(proof),
            "claims": jwt.decode(proof, options={"verify_signature": False}),
        }
    )
