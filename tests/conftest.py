"""Shared test fixtures for memberstack-cli.

Provides reusable fixtures for isolated home directories, settings, token
stores with a controllable clock, output state and CLI invocation. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

import pytest

from memberstack_cli.auth.token_store import TokenStore
from memberstack_cli.models import Settings
from memberstack_cli.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Home directory isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ``$MEMBERSTACK_HOME`` at a temporary directory.

    Clears the other ``MEMBERSTACK_*`` overrides and changes the working
    directory to tmp_path so that tests never touch real user files.

    Returns:
        The home directory (not yet created).
    """
    home = tmp_path / "home"
    monkeypatch.setenv("MEMBERSTACK_HOME", str(home))
    for var in [
        "MEMBERSTACK_OAUTH_ISSUER",
        "MEMBERSTACK_GRAPHQL_URL",
        "MEMBERSTACK_MODE",
        "MEMBERSTACK_CALLBACK_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def settings(isolated_home: Path) -> Settings:
    """Settings pointing at a test issuer and the isolated home."""
    return Settings(
        issuer="https://auth.example.com",
        graphql_url="https://api.example.com/graphql",
        token_dir=isolated_home,
        callback_timeout=5.0,
        request_timeout=5.0,
    )


# ---------------------------------------------------------------------------
# Token store with a controllable clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable epoch clock that tests move by hand."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(settings: Settings, clock: FakeClock) -> TokenStore:
    return TokenStore(settings, clock=clock)


def _jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT-shaped token carrying *claims*."""

    def _segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(claims)}.sig"


@pytest.fixture
def make_jwt():
    """Factory for unsigned JWT-shaped access tokens."""
    return _jwt


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a PLAIN-format, quiet OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
