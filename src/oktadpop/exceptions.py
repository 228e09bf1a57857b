"""Exception hierarchy for oktadpop.

All exceptions inherit from :class:`OktaDpopError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oktadpop.exit_codes`.
The top-level error handler in :func:`oktadpop.app.main` catches
``OktaDpopError`` and exits with the appropriate code.

Subclass hierarchy::

    OktaDpopError (exit 1)
    +-- ConfigError             (exit 1)
    +-- InvalidUsageError       (exit 2)
    |   +-- NotAuthenticatedError (exit 2)
    +-- AuthServerError         (exit 3)
    +-- ApiError                (exit 4)
    +-- ProtocolError           (exit 5)
    +-- NetworkError            (exit 6)
    +-- KeyMaterialError        (exit 7)
    |   +-- KeyLoadError        (exit 7)
    |   +-- KeyFormatError      (exit 7)
    +-- SigningError            (exit 8)
"""

from __future__ import annotations

from typing import Any, Optional

from oktadpop.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_KEY_ERROR,
    EXIT_PROTOCOL_ERROR,
    EXIT_SIGNING_ERROR,
)


class OktaDpopError(Exception):
    """Base exception for all oktadpop errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oktadpop.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(OktaDpopError):
    """Raised for missing or malformed configuration values."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(OktaDpopError):
    """Raised for invalid CLI arguments or API misuse by the caller."""

    exit_code = EXIT_INVALID_USAGE


class NotAuthenticatedError(InvalidUsageError):
    """Raised when a management API call is attempted before a token was obtained."""


class AuthServerError(OktaDpopError):
    """Raised when the token endpoint answers with anything other than a token or a nonce challenge.

    Args:
        message: Human-readable error description.
        status_code: HTTP status returned by the token endpoint.
        body: Response body, parsed as JSON when possible.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ApiError(OktaDpopError):
    """Raised by the CLI when the management API answers with a non-2xx status."""

    exit_code = EXIT_API_ERROR


class ProtocolError(OktaDpopError):
    """Raised when a response body is not valid JSON or lacks an expected field."""

    exit_code = EXIT_PROTOCOL_ERROR


class NetworkError(OktaDpopError):
    """Raised on transport failures (timeout, DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class KeyMaterialError(OktaDpopError):
    """Base class for problems with configured signing keys."""

    exit_code = EXIT_KEY_ERROR


class KeyLoadError(KeyMaterialError):
    """Raised when a key file is missing or unreadable."""


class KeyFormatError(KeyMaterialError):
    """Raised when key content cannot be parsed as a private key, public key, or JWK."""


class SigningError(OktaDpopError):
    """Raised when a JWT cannot be produced with the given key and algorithm."""

    exit_code = EXIT_SIGNING_ERROR
