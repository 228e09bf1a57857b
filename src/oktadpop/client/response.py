"""Response formatting bridge -- maps :class:`httpx.Response` to the output system.

After a management API call completes, :func:`format_api_response` writes
the status line to stderr and routes the body through
:meth:`~oktadpop.output.OutputManager.format_response`.

See Also:
    :mod:`oktadpop.output` -- the output manager that renders data.
"""

from __future__ import annotations

from typing import Any

import httpx

from oktadpop.output import get_output


def format_api_response(response: httpx.Response) -> None:
    """Print an API response using the global output system.

    Writes the HTTP status line (e.g. ``HTTP 200 OK``) to stderr, then
    renders the body to stdout.

    Args:
        response: The :class:`httpx.Response` to display.
    """
    output = get_output()
    output.info(f"HTTP {response.status_code} {response.reason_phrase or ''}".rstrip())

    content_type = response.headers.get("content-type", "application/json")
    data = extract_response_data(response)
    if data is not None:
        output.format_response(data, content_type)


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Returns the decoded JSON when the body parses, the raw text otherwise,
    and ``None`` for an empty body.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
