"""Call command -- send an arbitrary management API request.

The request gets the same DPoP treatment as the built-in commands: a
fresh proof bound to the method, the URL and the access token::

    oktadpop call GET /api/v1/groups
    oktadpop call POST /api/v1/groups --data '{"profile": {"name": "ops"}}'
    oktadpop call GET /api/v1/users/me -H "Accept: application/json"
"""

from __future__ import annotations

from typing import Optional

import typer

from oktadpop.client import ManagementClient, format_api_response
from oktadpop.exceptions import ApiError, InvalidUsageError
from oktadpop.exit_codes import EXIT_AUTH_FAILURE

_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


def parse_header(raw: str) -> tuple[str, str]:
    """Split a ``Name: value`` header argument.

    Raises:
        InvalidUsageError: If there is no colon or the name is empty.
    """
    name, sep, value = raw.partition(":")
    name = name.strip()
    if not sep or not name:
        raise InvalidUsageError(f"Invalid header {raw!r}; expected 'Name: value'")
    return name, value.strip()


def call_command(
    method: str = typer.Argument(help="HTTP method, e.g. GET or POST."),
    uri: str = typer.Argument(help="Path on the org domain, e.g. /api/v1/users."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra request header as 'Name: value'. Repeatable."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body, sent verbatim."
    ),
) -> None:
    """Send METHOD URI to the management API and print the response.

    Raises:
        InvalidUsageError: If the method, URI or a header is malformed.
        ApiError: If the management API answers with a non-2xx status.
    """
    method = method.upper()
    if method not in _METHODS:
        raise InvalidUsageError(f"Unsupported method {method!r}; use one of {', '.join(_METHODS)}")
    if not uri.startswith("/"):
        raise InvalidUsageError(f"URI must be a path starting with '/', got {uri!r}")

    headers = dict(parse_header(h) for h in header or [])
    if data is not None and not any(name.lower() == "content-type" for name in headers):
        headers["Content-Type"] = "application/json"

    with ManagementClient.from_env() as client:
        if client.authenticate() is None:
            raise typer.Exit(code=EXIT_AUTH_FAILURE)
        response = client.call(uri, method, headers=headers, body=data)

    format_api_response(response)
    if not response.is_success:
        raise ApiError(f"API error: HTTP {response.status_code}")
