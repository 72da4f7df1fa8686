"""Shared test fixtures for samlcookie.

Provides isolated config environments, output state management, a free
local port for callback servers, and helpers for driving the callback
endpoint the way a browser would. These fixtures are automatically
discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import socket
from http.client import HTTPConnection
from pathlib import Path

import pytest

from samlcookie.models import LoginConfig
from samlcookie.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches a reference to sys.stderr at creation time.
    When CliRunner or capfd redirect that stream and the test finishes,
    the cached reference becomes stale. Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager for the test."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config, forces the XDG layout,
    and clears all SAMLCOOKIE_* environment variables.

    Returns:
        The config directory tests can drop a ``config.json`` into.
    """
    config_home = tmp_path / "config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("samlcookie.config._is_xdg_platform", lambda: True)

    for var in [
        "SAMLCOOKIE_SERVER",
        "SAMLCOOKIE_PORT",
        "SAMLCOOKIE_REALM",
        "SAMLCOOKIE_TRUST_ALL",
        "SAMLCOOKIE_LISTEN_HOST",
        "SAMLCOOKIE_TIMEOUT",
        "SAMLCOOKIE_REQUEST_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    config_dir = config_home / "samlcookie"
    config_dir.mkdir(parents=True)
    return config_dir


# ---------------------------------------------------------------------------
# Callback server helpers
# ---------------------------------------------------------------------------


def find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def send_callback(port: int, path: str) -> tuple[int, str]:
    """Send a GET to the local callback server and return (status, body)."""
    conn = HTTPConnection("127.0.0.1", port, timeout=5)
    try:
        conn.request("GET", path)
        response = conn.getresponse()
        return response.status, response.read().decode("utf-8")
    finally:
        conn.close()


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def callback_get():
    """Return a function that GETs a path on the local callback server."""
    return send_callback


@pytest.fixture
def login_config(free_port: int) -> LoginConfig:
    """A config pointing at the example gateway with a short deadline."""
    return LoginConfig(
        server="vpn.example.com",
        realm="acme",
        port=free_port,
        timeout=5,
    )
