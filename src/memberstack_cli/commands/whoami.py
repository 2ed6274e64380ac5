"""The ``whoami`` command -- show the signed-in app and user.

Makes one authenticated GraphQL request through
:class:`~memberstack_cli.client.GraphQLClient`, so it doubles as a check
that the stored login works (refreshing the access token if it is close to
expiry).
"""

from __future__ import annotations

from typing import Any

import typer

from memberstack_cli.auth import AuthSession
from memberstack_cli.client import GraphQLClient
from memberstack_cli.commands import get_settings
from memberstack_cli.exceptions import MemberstackError
from memberstack_cli.output import error, print_record

WHOAMI_QUERY = """query {
  currentApp { id name status }
  currentUser { auth { email } }
}"""


def whoami_command(ctx: typer.Context) -> None:
    """Show current authenticated identity.

    Raises:
        typer.Exit: 3 when not logged in, 5 for API errors, 6 when the API
            cannot be reached.
    """
    settings = get_settings(ctx)
    session = AuthSession(settings)

    try:
        with GraphQLClient(settings, session) as client:
            data = client.request(WHOAMI_QUERY)
    except MemberstackError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_record(_identity(data, settings.mode), title="Who am I")


def _identity(data: dict[str, Any], mode: str) -> dict[str, Any]:
    app = data.get("currentApp") or {}
    user = data.get("currentUser") or {}
    email = (user.get("auth") or {}).get("email")
    return {
        "App": f"{app.get('name')} ({app.get('id')})",
        "Status": app.get("status"),
        "Mode": mode,
        "User": email,
    }
