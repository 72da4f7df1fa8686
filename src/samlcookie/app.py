"""Typer application and CLI entry point for samlcookie.

The tool is a single command::

    samlcookie --server vpn.example.com [--realm acme] [--port 8020]

It resolves the configuration, runs one browser-mediated SAML login via
:func:`~samlcookie.login.login`, and prints the ``SVPNCOOKIE`` value on
stdout so it can be piped into a VPN client::

    samlcookie -s vpn.example.com | sudo openfortivpn vpn.example.com --cookie-on-stdin

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`samlcookie.config`: Flag, environment, and config file precedence.
    :mod:`samlcookie.output`: Output initialised in :func:`login_command`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from samlcookie import __version__
from samlcookie.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="samlcookie",
    help="Log in to a VPN gateway through the browser and print its SVPNCOOKIE.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"samlcookie {__version__}")
        raise typer.Exit()


@app.command()
def login_command(
    server: Optional[str] = typer.Option(
        None, "--server", "-s", help="Gateway hostname (required)."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Local callback port. [default: 8020]"
    ),
    realm: Optional[str] = typer.Option(
        None, "--realm", "-r", help="SAML realm to authenticate to."
    ),
    trust_all: bool = typer.Option(
        False,
        "--trust-all",
        "-t",
        help="Skip TLS certificate verification on the cookie exchange.",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for the login. [default: 300]"
    ),
    listen_host: Optional[str] = typer.Option(
        None, "--listen-host", help="Address for the callback listener. [default: 127.0.0.1]"
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening a browser."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write the cookie to this file instead of stdout."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Open the gateway's SAML login in a browser and print the session cookie.

    Settings not given as flags are read from ``SAMLCOOKIE_*`` environment
    variables, then from the user config file.

    Raises:
        typer.Exit: With the error's exit code when the login fails.

    Example::

        samlcookie -s vpn.example.com -r acme
    """
    from samlcookie.config import resolve_config
    from samlcookie.exceptions import SamlCookieError
    from samlcookie.login import login
    from samlcookie.output import OutputManager, set_output

    output = OutputManager(
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
        output_file=output_file,
    )
    set_output(output)

    cli_overrides: dict[str, Any] = {
        "server": server,
        "port": port,
        "realm": realm,
        "trust_all_certs": True if trust_all else None,
        "timeout": timeout,
        "listen_host": listen_host,
        "open_browser": False if no_browser else None,
    }

    try:
        config = resolve_config(cli_overrides)
        output.debug(f"Gateway: {config.server_url} (callback {config.callback_url})")
        cookie = login(config)
    except SamlCookieError as exc:
        output.error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    output.print_data(cookie)


def _setup_signal_handlers() -> None:
    """Install SIGINT/SIGTERM handlers so an interrupted login exits cleanly.

    The handler raises ``SystemExit`` in the main thread, which unwinds the
    login wait and lets the coordinator stop the callback server.
    """

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from samlcookie.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``samlcookie`` console script.

    Unhandled :class:`~samlcookie.exceptions.SamlCookieError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from samlcookie.exceptions import SamlCookieError
        from samlcookie.output import error

        if isinstance(exc, SamlCookieError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
