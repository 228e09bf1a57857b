"""Users command -- list the users of the org.

Authenticates with the client-credentials grant, then sends
``GET /api/v1/users`` with a DPoP-bound token::

    oktadpop users
    oktadpop users --limit 20 --json
"""

from __future__ import annotations

from typing import Optional

import typer

from oktadpop.client import ManagementClient, extract_response_data
from oktadpop.exceptions import ApiError
from oktadpop.exit_codes import EXIT_AUTH_FAILURE
from oktadpop.output import format_response, info


def users_command(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum number of users to return."
    ),
) -> None:
    """List users of the org.

    Raises:
        typer.Exit: With code 3 if no access token could be obtained.
        ApiError: If the management API answers with a non-2xx status.
    """
    with ManagementClient.from_env() as client:
        if client.authenticate() is None:
            raise typer.Exit(code=EXIT_AUTH_FAILURE)
        response = client.list_users(limit=limit)

    data = extract_response_data(response)
    if not response.is_success:
        raise ApiError(
            f"API error: HTTP {response.status_code} {data if data is not None else ''}".rstrip()
        )

    if isinstance(data, list):
        info(f"Users List: {len(data)} user(s)")
    format_response(data if data is not None else [])
