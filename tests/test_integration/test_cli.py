"""Integration tests for the samlcookie command line.

The login itself is patched out; these tests cover flag parsing, config
resolution through the real resolver, the stdout/stderr split, exit codes,
and the ``main()`` crash handler.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from samlcookie import __version__
from samlcookie.app import app, main
from samlcookie.exceptions import (
    BindError,
    CookieNotFoundError,
    ServerError,
    TimeoutError_,
)
from samlcookie.models import LoginConfig


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _invoke(runner: CliRunner, args: list[str]):
    return runner.invoke(app, ["--no-color", *args])


class TestSuccess:
    def test_stdout_is_only_the_cookie(self, runner: CliRunner, isolated_config: Path) -> None:
        with patch("samlcookie.login.login", return_value="deadbeef") as mock_login:
            result = _invoke(runner, ["--server", "vpn.example.com", "--realm", "acme"])

        assert result.exit_code == 0, result.output
        assert result.stdout == "deadbeef\n"
        config = mock_login.call_args.args[0]
        assert isinstance(config, LoginConfig)
        assert config.server == "vpn.example.com"
        assert config.realm == "acme"
        assert config.port == 8020

    def test_short_flags(self, runner: CliRunner, isolated_config: Path) -> None:
        with patch("samlcookie.login.login", return_value="x") as mock_login:
            result = _invoke(runner, ["-s", "vpn.example.com", "-p", "9000", "-r", "acme", "-t"])

        assert result.exit_code == 0, result.output
        config = mock_login.call_args.args[0]
        assert config.port == 9000
        assert config.trust_all_certs is True

    def test_no_browser_and_timeout(self, runner: CliRunner, isolated_config: Path) -> None:
        with patch("samlcookie.login.login", return_value="x") as mock_login:
            result = _invoke(
                runner, ["-s", "vpn.example.com", "--no-browser", "--timeout", "30"]
            )

        assert result.exit_code == 0, result.output
        config = mock_login.call_args.args[0]
        assert config.open_browser is False
        assert config.timeout == 30

    def test_server_from_environment(
        self, runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SAMLCOOKIE_SERVER", "env.example.com")
        with patch("samlcookie.login.login", return_value="x") as mock_login:
            result = _invoke(runner, [])

        assert result.exit_code == 0, result.output
        assert mock_login.call_args.args[0].server == "env.example.com"

    def test_server_from_config_file(self, runner: CliRunner, isolated_config: Path) -> None:
        (isolated_config / "config.json").write_text(
            '{"server": "file.example.com", "realm": "acme"}', encoding="utf-8"
        )
        with patch("samlcookie.login.login", return_value="x") as mock_login:
            result = _invoke(runner, [])

        assert result.exit_code == 0, result.output
        assert mock_login.call_args.args[0].realm == "acme"

    def test_output_file(self, runner: CliRunner, isolated_config: Path, tmp_path: Path) -> None:
        target = tmp_path / "cookie.txt"
        with patch("samlcookie.login.login", return_value="deadbeef"):
            result = _invoke(runner, ["-s", "vpn.example.com", "-o", str(target)])

        assert result.exit_code == 0, result.output
        assert target.read_text(encoding="utf-8") == "deadbeef\n"
        assert "deadbeef" not in result.stdout

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"samlcookie {__version__}" in result.output


class TestFailures:
    def test_missing_server_is_usage_error(self, runner: CliRunner, isolated_config: Path) -> None:
        with patch("samlcookie.login.login") as mock_login:
            result = _invoke(runner, [])

        assert result.exit_code == 2
        assert "server is required" in result.output
        mock_login.assert_not_called()

    def test_invalid_port_value(self, runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(runner, ["-s", "vpn.example.com", "-p", "99999"])
        assert result.exit_code == 2
        assert "port" in result.output

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ServerError(403, "denied"), 5),
            (CookieNotFoundError("Cookie SVPNCOOKIE not found in response"), 3),
            (TimeoutError_("Timed out"), 7),
            (BindError("Failed to listen on 127.0.0.1:8020"), 1),
        ],
    )
    def test_login_errors_map_to_exit_codes(
        self, runner: CliRunner, isolated_config: Path, exc: Exception, code: int
    ) -> None:
        with patch("samlcookie.login.login", side_effect=exc):
            result = _invoke(runner, ["-s", "vpn.example.com"])

        assert result.exit_code == code
        assert f"Error: {exc}" in result.output


class TestMain:
    def test_unexpected_error_writes_crash_log(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("samlcookie.app._setup_signal_handlers", lambda: None)

        with patch("samlcookie.app.app", side_effect=RuntimeError("kaboom")):
            with pytest.raises(SystemExit) as excinfo:
                main()

        assert excinfo.value.code == 1
        logs = list((isolated_config.parent.parent / "data" / "samlcookie" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()

    def test_keyboard_interrupt_exits_130(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("samlcookie.app._setup_signal_handlers", lambda: None)

        with patch("samlcookie.app.app", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as excinfo:
                main()

        assert excinfo.value.code == 130

    def test_samlcookie_error_exits_with_its_code(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("samlcookie.app._setup_signal_handlers", lambda: None)

        with patch("samlcookie.app.app", side_effect=ServerError(502)):
            with pytest.raises(SystemExit) as excinfo:
                main()

        assert excinfo.value.code == 5
