"""CLI tests for ``memberstack auth login|logout|status``."""

from __future__ import annotations

import json
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from memberstack_cli.app import app
from memberstack_cli.auth.token_store import TokenStore
from memberstack_cli.commands.auth import _no_browser, format_duration
from memberstack_cli.config import resolve_settings
from memberstack_cli.exceptions import CallbackTimeoutError
from memberstack_cli.models import StoredTokens, TokenSet


def _save_tokens(expires_in: int = 3600, refresh_token: str | None = "rt1", access_token: str = "at1") -> TokenStore:
    store = TokenStore(resolve_settings())
    store.save(
        TokenSet(access_token=access_token, refresh_token=refresh_token, expires_in=expires_in),
        client_id="c1",
    )
    return store


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0m"), (59, "0m"), (600, "10m"), (3600, "1h 0m"), (7500, "2h 5m"), (-5, "0m")],
    )
    def test_format(self, seconds: int, expected: str) -> None:
        assert format_duration(seconds) == expected


class TestLogin:
    def test_success(self, cli_runner, isolated_home: Path) -> None:
        record = StoredTokens(access_token="at1", expires_at=int(time.time()) + 3600, client_id="c1", app_id="app_1")
        with patch("memberstack_cli.commands.auth.AuthSession") as mock_session_cls:
            mock_session_cls.return_value.login.return_value = record
            result = cli_runner.invoke(app, ["auth", "login"])

        assert result.exit_code == 0, result.output
        assert "Successfully authenticated" in result.output
        assert "app_1" in result.output
        mock_session_cls.return_value.login.assert_called_once_with()

    def test_timeout_and_no_browser(self, cli_runner, isolated_home: Path) -> None:
        with patch("memberstack_cli.commands.auth.AuthSession") as mock_session_cls:
            mock_session_cls.return_value.login.return_value = StoredTokens(
                access_token="at1", expires_at=1, client_id="c1"
            )
            result = cli_runner.invoke(app, ["auth", "login", "--timeout", "0", "--no-browser"])

        assert result.exit_code == 0, result.output
        mock_session_cls.return_value.login.assert_called_once_with(timeout=None)
        assert mock_session_cls.call_args.kwargs["open_browser"] is _no_browser

    def test_explicit_timeout(self, cli_runner, isolated_home: Path) -> None:
        with patch("memberstack_cli.commands.auth.AuthSession") as mock_session_cls:
            mock_session_cls.return_value.login.return_value = StoredTokens(
                access_token="at1", expires_at=1, client_id="c1"
            )
            cli_runner.invoke(app, ["auth", "login", "--timeout", "45"])
        mock_session_cls.return_value.login.assert_called_once_with(timeout=45.0)

    def test_negative_timeout_is_invalid_usage(self, cli_runner, isolated_home: Path) -> None:
        with patch("memberstack_cli.commands.auth.AuthSession") as mock_session_cls:
            result = cli_runner.invoke(app, ["auth", "login", "--timeout=-5"])

        assert result.exit_code == 2
        assert "--timeout must be 0 or a positive number" in result.output
        mock_session_cls.return_value.login.assert_not_called()

    def test_failure_exits_with_auth_code(self, cli_runner, isolated_home: Path) -> None:
        with patch("memberstack_cli.commands.auth.AuthSession") as mock_session_cls:
            mock_session_cls.return_value.login.side_effect = CallbackTimeoutError("Timed out after 5s")
            result = cli_runner.invoke(app, ["auth", "login"])

        assert result.exit_code == 3
        assert "Timed out after 5s" in result.output

    def test_no_browser_helper(self) -> None:
        assert _no_browser("https://example.com") is False


class TestLogout:
    def test_logout_revokes_and_clears(self, cli_runner, isolated_home: Path) -> None:
        store = _save_tokens()
        with patch("memberstack_cli.auth.session.revoke_token") as mock_revoke:
            result = cli_runner.invoke(app, ["auth", "logout"])

        assert result.exit_code == 0, result.output
        assert "Successfully logged out." in result.output
        assert mock_revoke.call_args.args[1:] == ("c1", "rt1")
        assert not store.path.exists()

    def test_logout_when_not_logged_in(self, cli_runner, isolated_home: Path) -> None:
        with patch("memberstack_cli.auth.session.revoke_token") as mock_revoke:
            result = cli_runner.invoke(app, ["auth", "logout"])

        assert result.exit_code == 0
        assert "nothing to remove" in result.output
        mock_revoke.assert_not_called()


class TestStatus:
    def test_not_logged_in(self, cli_runner, isolated_home: Path) -> None:
        result = cli_runner.invoke(app, ["auth", "status"])
        assert result.exit_code == 0
        assert "Not logged in" in result.output
        assert "memberstack auth login" in result.output

    def test_logged_in(self, cli_runner, isolated_home: Path, make_jwt) -> None:
        _save_tokens(access_token=make_jwt({"appId": "app_1"}))
        result = cli_runner.invoke(app, ["auth", "status"])

        assert result.exit_code == 0, result.output
        assert "Logged in" in result.output
        assert "app_1" in result.output
        assert "Available" in result.output
        assert "Valid" in result.output

    def test_expired_without_refresh(self, cli_runner, isolated_home: Path) -> None:
        _save_tokens(expires_in=-10, refresh_token=None)
        result = cli_runner.invoke(app, ["auth", "status"])

        assert result.exit_code == 0
        assert "Expired" in result.output
        assert "re-login required" in result.output

    def test_json(self, cli_runner, isolated_home: Path) -> None:
        _save_tokens()
        result = cli_runner.invoke(app, ["--json", "auth", "status"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["logged_in"] is True
        assert data["refreshable"] is True
        assert data["usable"] is True
        assert "access_token" not in data

    def test_status_does_not_refresh(self, cli_runner, isolated_home: Path) -> None:
        _save_tokens(expires_in=10)
        with patch("memberstack_cli.auth.token_store.refresh_access_token") as mock_refresh:
            result = cli_runner.invoke(app, ["auth", "status"])
        assert result.exit_code == 0
        mock_refresh.assert_not_called()
