"""Exception hierarchy for samlcookie.

All exceptions inherit from :class:`SamlCookieError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`samlcookie.exit_codes`.
The top-level error handler in :func:`samlcookie.app.main` catches
``SamlCookieError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Every error is terminal for the login attempt; nothing is retried.

Subclass hierarchy::

    SamlCookieError (exit 1)
    +-- ConfigError               (exit 2)
    +-- BindError                 (exit 1)
    +-- BrowserLaunchError        (exit 1)
    +-- MissingIdentifierError    (exit 3)
    +-- CookieNotFoundError       (exit 3)
    +-- RequestConstructionError  (exit 1)
    +-- TransportError            (exit 6)
    +-- ServerError               (exit 5)
    +-- TimeoutError_             (exit 7)
"""

from __future__ import annotations

from samlcookie.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
)

_BODY_PREVIEW_LIMIT = 200


class SamlCookieError(Exception):
    """Base exception for all samlcookie errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`samlcookie.exit_codes`. The entry point catches
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


class ConfigError(SamlCookieError):
    """Raised for configuration problems (missing server, invalid config file or values)."""

    exit_code = EXIT_INVALID_USAGE


class BindError(SamlCookieError):
    """Raised when the local callback listener cannot bind its port."""


class BrowserLaunchError(SamlCookieError):
    """Raised when the system browser cannot be launched."""


class MissingIdentifierError(SamlCookieError):
    """Raised when the gateway redirect reaches the callback without an ``id`` parameter."""

    exit_code = EXIT_AUTH_FAILURE


class CookieNotFoundError(SamlCookieError):
    """Raised when the cookie exchange succeeds but carries no ``SVPNCOOKIE``."""

    exit_code = EXIT_AUTH_FAILURE


class RequestConstructionError(SamlCookieError):
    """Raised when the cookie exchange request cannot be built."""


class TransportError(SamlCookieError):
    """Raised on network-level failures of the cookie exchange (DNS, TLS, timeout, refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class ServerError(SamlCookieError):
    """Raised when the gateway answers the cookie exchange with status >= 400.

    Args:
        status: The HTTP status code returned by the gateway.
        body: The full response body, kept for diagnostics. Only a short
            preview ends up in the message.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        preview = body.strip()[:_BODY_PREVIEW_LIMIT]
        message = f"Failed to retrieve cookie: HTTP {status}"
        if preview:
            message = f"{message}: {preview}"
        super().__init__(message)


class TimeoutError_(SamlCookieError):
    """Raised when no callback arrives before the login deadline.

    Named with a trailing underscore to avoid shadowing the built-in
    ``TimeoutError``.
    """

    exit_code = EXIT_TIMEOUT
