"""The ``reset`` command -- delete local data files and clear authentication.

Removes the export files other commands write into the working directory
(``members.json``, ``members.csv``) and the stored OAuth tokens. Asks for
confirmation unless ``--force`` is given.
"""

from __future__ import annotations

from pathlib import Path

import typer

from memberstack_cli.auth import TokenStore
from memberstack_cli.commands import get_settings
from memberstack_cli.exceptions import MemberstackError
from memberstack_cli.output import error, info, success

FILES_TO_DELETE = ("members.json", "members.csv")


def reset_command(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmation prompt."
    ),
) -> None:
    """Delete local data files and clear authentication.

    Tokens are cleared locally only; use ``auth logout`` to also revoke
    them on the server.

    Example::

        memberstack reset --force
    """
    if not force:
        info("This will:")
        info(f"  - Delete {', '.join(FILES_TO_DELETE)} (if present)")
        info("  - Clear stored authentication tokens")
        if not typer.confirm("Continue?", default=False, err=True):
            info("Aborted.")
            return

    deleted: list[str] = []
    try:
        for name in FILES_TO_DELETE:
            path = Path.cwd() / name
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise MemberstackError(f"Could not delete {path}: {exc}") from exc
            deleted.append(name)

        TokenStore(get_settings(ctx)).clear()
    except MemberstackError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    for name in deleted:
        success(f"Deleted {name}")
    success("Cleared authentication tokens")
    if not deleted:
        info("No local data files found to delete.")
