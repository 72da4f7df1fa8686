"""Pydantic models shared across samlcookie.

:class:`LoginConfig` is the single immutable description of a login
attempt. It is built once at startup by
:func:`~samlcookie.config.resolve_config` from CLI flags, environment
variables, and the user config file, and is never mutated afterwards
(``frozen=True``).

The gateway URLs the login flow needs are derived here so that the
coordinator, the callback handler, and the cookie exchange all agree on
them:

* :attr:`LoginConfig.server_url` -- ``https://{server}``
* :attr:`LoginConfig.start_url` -- the SAML entry point opened in the browser
* :attr:`LoginConfig.callback_url` -- the local redirect target
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PORT = 8020
DEFAULT_LISTEN_HOST = "127.0.0.1"
DEFAULT_TIMEOUT = 300.0
DEFAULT_REQUEST_TIMEOUT = 30.0

SAML_START_PATH = "/remote/saml/start"
SAML_AUTH_ID_PATH = "/remote/saml/auth_id"
SESSION_COOKIE_NAME = "SVPNCOOKIE"


class LoginConfig(BaseModel):
    """Settings for one browser-mediated SAML login.

    Example::

        LoginConfig(server="vpn.example.com", realm="acme")

    ``server`` is a bare host (optionally ``host:port``). A leading
    ``https://`` and trailing slashes are tolerated and stripped, since
    users routinely paste the gateway address from a browser.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    server: str = Field(description="Gateway hostname, optionally with :port")
    port: int = Field(
        default=DEFAULT_PORT, ge=1, le=65535, description="Local callback port"
    )
    realm: Optional[str] = Field(default=None, description="Optional SAML realm")
    trust_all_certs: bool = Field(
        default=False,
        description="Skip TLS certificate verification on the cookie exchange",
    )
    listen_host: str = Field(
        default=DEFAULT_LISTEN_HOST, description="Address the callback listener binds"
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Seconds to wait for the callback"
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="Seconds allowed for the cookie exchange request",
    )
    open_browser: bool = Field(
        default=True,
        description="Launch the system browser; when false the URL is only printed",
    )

    @field_validator("server")
    @classmethod
    def _normalise_server(cls, value: str) -> str:
        server = value.strip()
        for scheme in ("https://", "http://"):
            if server.lower().startswith(scheme):
                server = server[len(scheme):]
                break
        server = server.rstrip("/")
        if not server:
            raise ValueError("server is required")
        if "/" in server or "?" in server or " " in server:
            raise ValueError(f"server must be a bare hostname, got {value!r}")
        return server

    @field_validator("realm")
    @classmethod
    def _empty_realm_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def server_url(self) -> str:
        """Base URL of the gateway."""
        return f"https://{self.server}"

    @property
    def start_url(self) -> str:
        """SAML entry point the browser is sent to.

        ``redirect=1`` asks the gateway to bounce the browser back to the
        local listener with an ``id`` parameter once the identity provider
        is done.
        """
        params = {"redirect": "1"}
        if self.realm:
            params["realm"] = self.realm
        return f"{self.server_url}{SAML_START_PATH}?{urlencode(params)}"

    @property
    def callback_url(self) -> str:
        """Local address the gateway redirects the browser back to."""
        return f"http://{self.listen_host}:{self.port}/"
