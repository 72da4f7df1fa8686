"""Exchange a gateway login identifier for the ``SVPNCOOKIE`` session cookie.

After the SAML dance the gateway redirects the browser to the local
listener with an opaque ``id``. That identifier is redeemed with a single
``GET {server}/remote/saml/auth_id?id=...``; the response's
``Set-Cookie`` headers carry the session cookie.

The request runs on its own short-lived :class:`httpx.Client` so that
``trust_all_certs`` weakens TLS verification for this request only.
"""

from __future__ import annotations

from typing import Optional

import httpx

from samlcookie import __version__
from samlcookie.exceptions import (
    CookieNotFoundError,
    RequestConstructionError,
    ServerError,
    TransportError,
)
from samlcookie.models import SAML_AUTH_ID_PATH, SESSION_COOKIE_NAME, LoginConfig
from samlcookie.output import get_output

USER_AGENT = f"samlcookie/{__version__}"


def retrieve_cookie(
    server_url: str,
    identifier: str,
    config: LoginConfig,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Redeem *identifier* at the gateway and return the session cookie value.

    Args:
        server_url: Gateway base URL, e.g. ``https://vpn.example.com``.
        identifier: The opaque ``id`` received on the local callback.
        config: Login settings; ``trust_all_certs`` and ``request_timeout``
            apply to this request.
        transport: Optional httpx transport, used by tests to stub the
            gateway.

    Returns:
        The non-empty ``SVPNCOOKIE`` value.

    Raises:
        RequestConstructionError: If the request URL cannot be built.
        TransportError: If the request cannot be sent or times out.
        ServerError: If the gateway answers with status >= 400.
        CookieNotFoundError: If the response carries no ``SVPNCOOKIE``.
    """
    output = get_output()
    url = f"{server_url.rstrip('/')}{SAML_AUTH_ID_PATH}"

    if config.trust_all_certs:
        output.warning(
            f"TLS certificate verification is disabled for {server_url}"
        )

    with httpx.Client(
        verify=not config.trust_all_certs,
        timeout=config.request_timeout,
        follow_redirects=False,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    ) as client:
        try:
            request = client.build_request("GET", url, params={"id": identifier})
        except (httpx.InvalidURL, ValueError) as exc:
            raise RequestConstructionError(
                f"Failed to create HTTP request for {url}: {exc}"
            ) from exc

        output.debug(f"GET {url}")
        try:
            response = client.send(request)
        except httpx.UnsupportedProtocol as exc:
            raise RequestConstructionError(
                f"Failed to create HTTP request for {url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to perform HTTP request: {exc}") from exc

        output.debug(f"Cookie exchange answered HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ServerError(response.status_code, response.text)

        return extract_session_cookie(response)


def extract_session_cookie(response: httpx.Response) -> str:
    """Return the first non-empty ``SVPNCOOKIE`` set by *response*.

    Only the leading ``name=value`` pair of each ``Set-Cookie`` header is
    read; attributes (``path``, ``secure``, ``Partitioned``, unknown flags)
    are ignored, as is ``expires``.

    Raises:
        CookieNotFoundError: If no header sets a non-empty ``SVPNCOOKIE``.
            The message names the cookies that were present, never their
            values.
    """
    seen: list[str] = []
    for header in response.headers.get_list("set-cookie"):
        pair = _parse_cookie_pair(header)
        if pair is None:
            get_output().debug(f"Ignoring unparseable Set-Cookie header: {header[:40]}")
            continue
        name, value = pair
        if name == SESSION_COOKIE_NAME:
            if value:
                return value
            # The gateway clears the cookie this way on a failed login.
            seen.append(f"{name} (empty)")
            continue
        seen.append(name)

    present = ", ".join(seen) if seen else "none"
    raise CookieNotFoundError(
        f"Cookie {SESSION_COOKIE_NAME} not found in response (cookies present: {present})"
    )


def _parse_cookie_pair(header: str) -> Optional[tuple[str, str]]:
    """Split the ``name=value`` part of a ``Set-Cookie`` header.

    Returns ``None`` when the first segment has no ``=`` or an empty name.
    Surrounding double quotes are removed from the value.
    """
    name, sep, value = header.split(";", 1)[0].partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return name, value
