"""Login coordinator: one browser-mediated SAML login per call.

:func:`login` owns the whole lifecycle of an attempt:

1. Bind the local callback listener (:class:`~samlcookie.callback.CallbackServer`).
2. Route ``/`` to a :class:`~samlcookie.callback.LoginCallback` and start
   serving on a background thread.
3. Open the gateway's SAML start URL in the system browser.
4. Wait for the first of: a cookie, a failure from the callback, or the
   deadline.
5. Stop the server on every exit path.

An interrupt (SIGINT/SIGTERM, see :mod:`samlcookie.app`) surfaces as an
exception out of the wait; leaving the ``with server:`` block still tears
the server down.
"""

from __future__ import annotations

import time
import webbrowser
from typing import Callable, Optional

from samlcookie.callback import CallbackServer, LoginCallback, LoginOutcome
from samlcookie.exceptions import BindError, BrowserLaunchError, TimeoutError_
from samlcookie.exchange import retrieve_cookie
from samlcookie.models import LoginConfig
from samlcookie.output import get_output

BrowserOpener = Callable[[str], bool]
Exchange = Callable[[str, str, LoginConfig], str]


def open_login_page(url: str, opener: Optional[BrowserOpener] = None) -> None:
    """Open *url* in the default browser.

    Args:
        url: The SAML start URL.
        opener: Replacement for :func:`webbrowser.open`, used by tests.

    Raises:
        BrowserLaunchError: If no browser could be launched.
    """
    opener = opener or webbrowser.open
    try:
        launched = opener(url)
    except webbrowser.Error as exc:
        raise BrowserLaunchError(f"Failed to open browser: {exc}") from exc
    if not launched:
        raise BrowserLaunchError(
            "Failed to open browser: no runnable browser found "
            "(use --no-browser to print the login URL instead)"
        )


def login(
    config: LoginConfig,
    *,
    browser_opener: Optional[BrowserOpener] = None,
    exchange: Optional[Exchange] = None,
) -> str:
    """Run one SAML login and return the ``SVPNCOOKIE`` value.

    Args:
        config: The resolved login settings.
        browser_opener: Replacement for :func:`webbrowser.open`.
        exchange: Replacement for :func:`~samlcookie.exchange.retrieve_cookie`.

    Returns:
        The session cookie value (never empty).

    Raises:
        BindError: If the callback port is unavailable.
        BrowserLaunchError: If the browser cannot be launched.
        MissingIdentifierError: If the redirect arrives without an ``id``.
        RequestConstructionError: If the exchange request cannot be built.
        TransportError: If the exchange request fails on the network.
        ServerError: If the gateway rejects the exchange.
        CookieNotFoundError: If the exchange yields no session cookie.
        TimeoutError_: If no callback arrives within ``config.timeout``.
    """
    output = get_output()
    exchange = exchange or retrieve_cookie
    deadline = time.monotonic() + config.timeout

    outcome = LoginOutcome()
    callback = LoginCallback(
        outcome,
        lambda identifier: exchange(config.server_url, identifier, config),
    )

    try:
        server = CallbackServer((config.listen_host, config.port), {"/": callback})
    except OSError as exc:
        raise BindError(
            f"Failed to listen on {config.listen_host}:{config.port}: {exc}"
        ) from exc

    with server:
        server.start()
        output.debug(f"Waiting for the gateway redirect on {config.callback_url}")

        url = config.start_url
        if config.open_browser:
            output.info("Opening browser for SAML login...")
            output.debug(f"Login URL: {url}")
            open_login_page(url, browser_opener)
        else:
            output.info("Open this URL in a browser to log in:")
            output.info(url)

        remaining = max(0.0, deadline - time.monotonic())
        try:
            cookie = outcome.wait(remaining)
        except TimeoutError_:
            raise TimeoutError_(
                f"Timed out after {config.timeout:g} seconds waiting for the login callback"
            ) from None

    output.success("Login successful")
    return cookie
