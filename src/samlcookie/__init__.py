"""samlcookie -- browser-mediated SAML login that prints a gateway session cookie.

Starts a short-lived local HTTP listener, opens the system browser at the
gateway's SAML entry point, receives the redirect carrying an opaque login
identifier, redeems it for the ``SVPNCOOKIE`` session cookie, and prints
the cookie for reuse by other tooling (e.g. a VPN client).

Typical use::

    samlcookie --server vpn.example.com | openfortivpn vpn.example.com --cookie-on-stdin

Modules:
    app: Typer application and CLI entry point.
    login: The login coordinator.
    callback: Local callback server and one-shot login outcome.
    exchange: Cookie exchange against the gateway.
    models: Pydantic login configuration.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr output discipline with Rich support.
"""

__version__ = "0.1.0"
