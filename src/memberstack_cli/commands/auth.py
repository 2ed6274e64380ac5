"""Auth commands -- log in, log out and inspect the stored login.

Provides the ``memberstack auth`` sub-command group. ``login`` runs the
browser-based OAuth flow through :class:`~memberstack_cli.auth.AuthSession`;
``logout`` revokes and deletes the stored tokens; ``status`` reports on them
without touching the network.

Typical workflow::

    memberstack auth login      # opens the browser
    memberstack auth status     # check expiry
    memberstack auth logout
"""

from __future__ import annotations

import webbrowser
from typing import Any, Optional

import typer

from memberstack_cli.auth import AuthSession
from memberstack_cli.commands import get_settings
from memberstack_cli.exceptions import InvalidUsageError, MemberstackError
from memberstack_cli.models import AuthStatus
from memberstack_cli.output import error, info, print_json, print_record, success, suggest


auth_app = typer.Typer(no_args_is_help=True)


def _no_browser(url: str) -> bool:
    return False


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the browser (0 waits indefinitely).",
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening it."
    ),
) -> None:
    """Authenticate with Memberstack via OAuth.

    Registers a client for a loopback redirect, opens the authorization
    page in the browser, waits for the redirect and stores the tokens.

    Raises:
        typer.Exit: With the failing step's exit code (3 for auth errors).

    Example::

        memberstack auth login --timeout 120
    """
    settings = get_settings(ctx)
    session = AuthSession(
        settings, open_browser=_no_browser if no_browser else webbrowser.open
    )

    login_kwargs: dict[str, Any] = {}
    if timeout is not None:
        login_kwargs["timeout"] = timeout if timeout > 0 else None

    try:
        if timeout is not None and timeout < 0:
            raise InvalidUsageError("--timeout must be 0 or a positive number of seconds")
        record = session.login(**login_kwargs)
    except MemberstackError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success("Successfully authenticated with Memberstack!")
    if record.app_id:
        info(f"App ID: {record.app_id}")
    suggest("Check it: memberstack whoami")


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Remove stored authentication tokens.

    The refresh token is revoked on the server first when one is stored;
    a failed revocation does not stop the local logout.
    """
    session = AuthSession(get_settings(ctx))
    try:
        had_tokens = session.logout()
    except MemberstackError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if had_tokens:
        success("Successfully logged out.")
    else:
        info("Not logged in; nothing to remove.")


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show current authentication status.

    With ``--json`` the full status object is printed; otherwise a short
    record. Exits 0 whether or not a login is stored.
    """
    status = AuthSession(get_settings(ctx)).status()

    if (ctx.find_root().obj or {}).get("json"):
        print_json(status.model_dump())
        return

    print_record(_status_record(status), title="Authentication")
    if not status.logged_in:
        suggest("Run: memberstack auth login")
    elif status.needs_login:
        suggest("Log in again: memberstack auth login")


def _status_record(status: AuthStatus) -> dict[str, Any]:
    if not status.logged_in:
        return {"Status": "Not logged in"}

    record: dict[str, Any] = {"Status": "Logged in"}
    if status.app_id:
        record["App ID"] = status.app_id
    if status.expired:
        record["Access Token"] = "Expired"
    else:
        record["Expires in"] = format_duration(status.expires_in or 0)
    record["Refresh"] = "Available" if status.refreshable else "None"
    if status.usable:
        record["Token"] = "Valid"
    elif status.refreshable:
        record["Token"] = "Refreshes on next request"
    else:
        record["Token"] = "Invalid - re-login required"
    return record


def format_duration(seconds: int) -> str:
    """Render remaining seconds as ``"2h 5m"`` or ``"42m"``."""
    minutes = max(seconds, 0) // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"
