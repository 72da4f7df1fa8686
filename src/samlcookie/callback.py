"""Local callback server and the one-shot login outcome.

The gateway finishes the SAML flow by redirecting the browser to
``http://127.0.0.1:<port>/?id=<opaque>``. This module provides the pieces
that receive that redirect:

* :class:`LoginOutcome` -- a single-assignment result cell written by the
  request handler and read by the coordinator. The first write wins;
  later writes return ``False`` without blocking.
* :class:`LoginCallback` -- the handler for ``/``. It redeems the ``id``
  through an injected exchange function and settles the outcome.
* :class:`CallbackServer` -- a :class:`~http.server.ThreadingHTTPServer`
  that dispatches through its own route table. Each login builds a fresh
  server, so no routing state is shared across invocations.

Responses are written to the browser *before* the outcome is settled, so
the success page reaches the browser even if the coordinator returns and
the process exits right after.
"""

from __future__ import annotations

import functools
import html
import logging
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

from samlcookie.exceptions import MissingIdentifierError, SamlCookieError, TimeoutError_
from samlcookie.output import get_output

logger = logging.getLogger(__name__)

SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><title>Login successful</title></head>
<body>
    <p>Login successful. You can close this window.</p>
    <script type="text/javascript">
        window.close();
    </script>
</body>
</html>
"""


def _message_page(title: str, message: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n"
        f"<head><title>{html.escape(title)}</title></head>\n"
        f"<body><h2>{html.escape(title)}</h2><p>{html.escape(message)}</p></body>\n"
        "</html>\n"
    )


class LoginOutcome:
    """Single-assignment cell holding either a cookie or an error.

    Safe for any number of writer threads and one waiting reader.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._cookie: Optional[str] = None
        self._error: Optional[SamlCookieError] = None

    @property
    def is_settled(self) -> bool:
        return self._settled.is_set()

    def set_cookie(self, cookie: str) -> bool:
        """Settle with *cookie*. Returns ``False`` if already settled."""
        return self._settle(cookie=cookie)

    def set_error(self, error: SamlCookieError) -> bool:
        """Settle with *error*. Returns ``False`` if already settled."""
        return self._settle(error=error)

    def _settle(
        self,
        cookie: Optional[str] = None,
        error: Optional[SamlCookieError] = None,
    ) -> bool:
        with self._lock:
            if self._settled.is_set():
                logger.debug("Login outcome already settled, dropping late result")
                return False
            self._cookie = cookie
            self._error = error
            self._settled.set()
            return True

    def wait(self, timeout: Optional[float]) -> str:
        """Block until settled and return the cookie.

        Args:
            timeout: Seconds to wait, or ``None`` to wait forever.

        Raises:
            TimeoutError_: If nothing settles the outcome in time.
            SamlCookieError: The error the outcome was settled with.
        """
        if not self._settled.wait(timeout):
            raise TimeoutError_(
                f"Timed out after {timeout:.0f} seconds waiting for the login callback"
            )
        if self._error is not None:
            raise self._error
        assert self._cookie is not None
        return self._cookie


@dataclass
class CallbackResponse:
    """What a route wants written back, plus an action to run once it is sent."""

    status: int
    body: str
    after_send: Optional[Callable[[], Any]] = None


Route = Callable[[dict[str, list[str]]], CallbackResponse]


class LoginCallback:
    """Route for the gateway redirect: redeem ``id`` and settle the outcome.

    Args:
        outcome: The cell to settle.
        exchange: Called with the identifier; returns the cookie or raises
            a :class:`~samlcookie.exceptions.SamlCookieError`.
    """

    def __init__(self, outcome: LoginOutcome, exchange: Callable[[str], str]) -> None:
        self._outcome = outcome
        self._exchange = exchange
        self._lock = threading.Lock()
        self._claimed = False

    def _claim(self) -> bool:
        """Reserve this callback for the calling request. Only the first caller wins."""
        with self._lock:
            if self._claimed or self._outcome.is_settled:
                return False
            self._claimed = True
            return True

    def __call__(self, query: dict[str, list[str]]) -> CallbackResponse:
        # Browser retries and prefetches must not redeem the id twice,
        # including ones that arrive while the first exchange is running.
        if not self._claim():
            return CallbackResponse(
                409, _message_page("Login already handled", "You can close this window.")
            )

        identifier = (query.get("id") or [""])[0]
        if not identifier:
            error = MissingIdentifierError("missing id parameter in redirect URL")
            return CallbackResponse(
                400,
                _message_page("Login failed", "missing id"),
                functools.partial(self._outcome.set_error, error),
            )

        try:
            cookie = self._exchange(identifier)
        except SamlCookieError as exc:
            return CallbackResponse(
                500,
                _message_page("Login failed", str(exc)),
                functools.partial(self._outcome.set_error, exc),
            )
        except Exception as exc:
            logger.exception("Unexpected failure while redeeming the login id")
            error = SamlCookieError(f"Unexpected error during cookie exchange: {exc}")
            return CallbackResponse(
                500,
                _message_page("Login failed", str(error)),
                functools.partial(self._outcome.set_error, error),
            )

        return CallbackResponse(
            200, SUCCESS_PAGE, functools.partial(self._outcome.set_cookie, cookie)
        )


class CallbackRequestHandler(BaseHTTPRequestHandler):
    """Dispatches GET requests through ``self.server.routes``."""

    server: CallbackServer
    server_version = "samlcookie"

    def do_GET(self) -> None:
        parts = urlsplit(self.path)
        route = self.server.routes.get(parts.path or "/")
        if route is None:
            self._send(404, _message_page("Not found", parts.path))
            return

        response = route(parse_qs(parts.query))
        self._send(response.status, response.body)
        if response.after_send is not None:
            response.after_send()

    def _send(self, status: int, body: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        try:
            self.wfile.write(payload)
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Browser closed the connection before the response was sent")

    def log_message(self, format: str, *args: Any) -> None:
        # The query string carries the login id; keep it out of plain stderr.
        get_output().debug(f"callback: {format % args}")


class CallbackServer(ThreadingHTTPServer):
    """Threaded local HTTP server with a per-instance route table.

    Binds and listens in the constructor, so connections are accepted
    (queued by the kernel) before :meth:`start` runs the serve loop.

    Args:
        address: ``(host, port)`` to bind.
        routes: Mapping of URL path to route callable.

    Raises:
        OSError: If the address cannot be bound.
    """

    daemon_threads = True

    def __init__(self, address: tuple[str, int], routes: dict[str, Route]) -> None:
        self.routes: dict[str, Route] = dict(routes)
        self._thread: Optional[threading.Thread] = None
        super().__init__(address, CallbackRequestHandler)

    @property
    def port(self) -> int:
        """The bound port (useful when constructed with port 0)."""
        return self.server_address[1]

    def start(self) -> None:
        """Run the serve loop on a daemon thread."""
        self._thread = threading.Thread(
            target=self.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="samlcookie-callback",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Callback server listening on %s:%s", *self.server_address[:2])

    def stop(self) -> None:
        """Stop the serve loop (if running) and release the listening socket.

        Safe to call more than once. ``serve_forever`` returns normally
        after ``shutdown``, so a closed server never surfaces as an error.
        """
        if self._thread is not None:
            self.shutdown()
            self._thread.join()
            self._thread = None
        self.server_close()

    def __enter__(self) -> CallbackServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
