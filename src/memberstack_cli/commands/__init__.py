"""Built-in CLI sub-commands for memberstack-cli.

* :mod:`~memberstack_cli.commands.auth` -- ``login``, ``logout`` and
  ``status``.
* :mod:`~memberstack_cli.commands.whoami` -- show the signed-in app and user.
* :mod:`~memberstack_cli.commands.reset` -- delete local data and tokens.

``auth`` is a :class:`typer.Typer` sub-application; the single commands are
plain callbacks registered directly on the root app.
"""

from __future__ import annotations

import typer

from memberstack_cli.models import Settings


def get_settings(ctx: typer.Context) -> Settings:
    """Return the settings resolved by the root callback.

    Falls back to resolving them afresh when a command is invoked without
    the root app (for example a sub-app under test).
    """
    obj = ctx.find_root().obj or {}
    settings = obj.get("settings")
    if settings is None:
        from memberstack_cli.config import resolve_settings

        settings = resolve_settings()
    return settings
