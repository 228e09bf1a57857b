"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oktadpop.exceptions.OktaDpopError` subclass.
Shell wrappers and CI jobs can inspect the exit code to determine the
failure class without parsing stderr.

Example::

    $ oktadpop users
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected the client
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or the configuration is invalid."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments, or before authenticating."""

EXIT_AUTH_FAILURE = 3
"""The authorization server refused to issue an access token."""

EXIT_API_ERROR = 4
"""The management API answered with a non-2xx status."""

EXIT_PROTOCOL_ERROR = 5
"""A server response was not valid JSON or lacked an expected field."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_KEY_ERROR = 7
"""Key material could not be read or parsed."""

EXIT_SIGNING_ERROR = 8
"""A JWT could not be signed with the configured key."""
