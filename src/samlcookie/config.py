"""Configuration resolution with XDG paths and precedence layering.

This module turns the user's settings into a single frozen
:class:`~samlcookie.models.LoginConfig`:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.samlcookie/`` on macOS and Windows. See :func:`get_config_dir`
  and :func:`get_data_dir`.
* **Config file** -- an optional ``config.json`` in the config directory
  holding defaults for any :class:`~samlcookie.models.LoginConfig` field,
  typically the gateway and realm a user always logs into.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  ``SAMLCOOKIE_*`` environment variables, the config file, and model
  defaults.

Nothing is ever written back; the tool only reads configuration.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from samlcookie.exceptions import ConfigError
from samlcookie.models import LoginConfig

_APP_NAME = "samlcookie"
_CONFIG_FILENAME = "config.json"
_ENV_PREFIX = "SAMLCOOKIE_"

# Fields that may be supplied through the environment, keyed by field name.
ENV_VARS: dict[str, str] = {
    "server": f"{_ENV_PREFIX}SERVER",
    "port": f"{_ENV_PREFIX}PORT",
    "realm": f"{_ENV_PREFIX}REALM",
    "trust_all_certs": f"{_ENV_PREFIX}TRUST_ALL",
    "listen_host": f"{_ENV_PREFIX}LISTEN_HOST",
    "timeout": f"{_ENV_PREFIX}TIMEOUT",
    "request_timeout": f"{_ENV_PREFIX}REQUEST_TIMEOUT",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory without creating it.

    On Linux/BSD: ``$XDG_CONFIG_HOME/samlcookie/`` (default ``~/.config/samlcookie/``).
    On macOS/Windows: ``~/.samlcookie/``.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    return _fallback_base_dir()


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/samlcookie/`` (default ``~/.local/share/samlcookie/``).
    On macOS/Windows: ``~/.samlcookie/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_file_path() -> Path:
    """Path to the user config file (which may not exist)."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Layers ---


def load_config_file(path: Optional[Path] = None) -> dict[str, Any]:
    """Load the user config file.

    Args:
        path: Explicit file to read. Defaults to :func:`config_file_path`.

    Returns:
        The parsed JSON object, or an empty dict if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = path or config_file_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, ValueError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file at {path}: expected a JSON object")
    return data


def load_env_overrides() -> dict[str, str]:
    """Collect ``SAMLCOOKIE_*`` environment variables that are set and non-empty.

    Values are returned as raw strings; pydantic coerces them
    (``"8020"`` to ``8020``, ``"true"``/``"1"``/``"yes"`` to ``True``).
    """
    overrides: dict[str, str] = {}
    for field, var in ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            overrides[field] = value
    return overrides


# --- Precedence resolution ---


def resolve_config(
    cli_overrides: Optional[dict[str, Any]] = None,
    config_path: Optional[Path] = None,
) -> LoginConfig:
    """Resolve the login configuration with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_overrides``; ``None`` values mean "not given")
        2. Environment variables (``SAMLCOOKIE_SERVER``, ``SAMLCOOKIE_PORT``, ...)
        3. User config file (``~/.config/samlcookie/config.json``)
        4. Model defaults

    Args:
        cli_overrides: Field values taken from the command line.
        config_path: Config file override, mainly for tests.

    Returns:
        A frozen :class:`~samlcookie.models.LoginConfig`.

    Raises:
        ConfigError: If the server is missing after all layers, or any value
            fails validation.
    """
    merged: dict[str, Any] = {}
    # 4 is implicit in the model. 3. Config file
    merged.update(load_config_file(config_path))
    # 2. Environment
    merged.update(load_env_overrides())
    # 1. CLI flags
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value

    if not str(merged.get("server") or "").strip():
        raise ConfigError(
            "server is required (pass --server, set "
            f"{ENV_VARS['server']}, or add \"server\" to {config_path or config_file_path()})"
        )

    try:
        return LoginConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one line per offending field."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ())) or "config"
        parts.append(f"{field}: {err.get('msg', 'invalid value')}")
    return "Invalid configuration: " + "; ".join(parts)
