"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~samlcookie.exceptions.SamlCookieError` subclass.
Wrapper scripts (for example one piping the cookie into a VPN client) can
inspect the exit code to tell a timeout from a rejected login without
parsing stderr.

Example::

    $ samlcookie -s vpn.example.com
    $ echo $?
    7   # EXIT_TIMEOUT -- nobody completed the login in the browser
"""

EXIT_SUCCESS = 0
"""The cookie was obtained and printed."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (port in use, no browser, crash)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required settings."""

EXIT_AUTH_FAILURE = 3
"""The login completed but did not yield a usable session."""

EXIT_SERVER_ERROR = 5
"""The gateway answered the cookie exchange with an HTTP error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, TLS, connection refused)."""

EXIT_TIMEOUT = 7
"""No callback arrived before the login deadline."""

EXIT_CANCELLED = 130
"""The login was interrupted by SIGINT or SIGTERM."""
