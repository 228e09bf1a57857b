"""oktadpop -- Okta management API access with DPoP-bound tokens.

A service app authenticates with the OAuth 2.0 client-credentials grant,
proving its identity with a private-key JWT client assertion and binding
the issued access token to its own key pair with DPoP proofs. The token
endpoint's ``use_dpop_nonce`` challenge is answered with a single retry.
Every management API call then carries ``Authorization: DPoP <token>``
plus a fresh proof bound to that token.

Typical use::

    from oktadpop.client import ManagementClient

    with ManagementClient.from_env() as client:
        client.authenticate()
        users = client.list_users().json()

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: Environment-driven configuration.
    keys: Loading of the client-assertion key and DPoP key pair.
    signing: JWT signing on top of PyJWT.
    assertion: Private-key JWT client assertions.
    dpop: DPoP proof construction.
    token: Token acquisition with the DPoP nonce handshake.
    invoker: Management API calls with DPoP-bound authorization.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
