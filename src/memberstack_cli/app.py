"""Typer application and CLI entry point for memberstack-cli.

This module wires together the top-level Typer application and registers the
built-in commands (``auth``, ``whoami``, ``reset``). The root callback turns
the global flags into an :class:`~memberstack_cli.output.OutputManager` and
an explicit :class:`~memberstack_cli.models.Settings` value that commands
read from ``ctx.obj``.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the home directory.

See Also:
    :mod:`memberstack_cli.config`: Settings resolution.
    :mod:`memberstack_cli.output`: Output formatting initialised in
    :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from memberstack_cli import __version__
from memberstack_cli.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="memberstack",
    help="Manage your Memberstack app from the terminal.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from memberstack_cli.commands.auth import auth_app  # noqa: E402
from memberstack_cli.commands.reset import reset_command  # noqa: E402
from memberstack_cli.commands.whoami import whoami_command  # noqa: E402

app.add_typer(auth_app, name="auth", help="Log in, log out and check authentication.")
app.command("whoami")(whoami_command)
app.command("reset")(reset_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"memberstack {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", "-j", help="JSON output format."
    ),
    live: bool = typer.Option(
        False, "--live", help="Use the live environment instead of sandbox."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~memberstack_cli.output.OutputManager`
    from CLI flags and resolves the :class:`~memberstack_cli.models.Settings`
    for this invocation into ``ctx.obj["settings"]``.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        live: Target the live environment (``ms-mode: live``).
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
    """
    from memberstack_cli.config import resolve_settings
    from memberstack_cli.exceptions import ConfigError
    from memberstack_cli.output import OutputFormat, OutputManager, error, set_output

    output = OutputManager(
        format=OutputFormat.JSON if json_output else OutputFormat.AUTO,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    try:
        settings = resolve_settings(live=live)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["json"] = json_output


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from memberstack_cli.config import get_logs_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_logs_dir() / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``memberstack`` console script.

    Unhandled :class:`~memberstack_cli.exceptions.MemberstackError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from memberstack_cli.exceptions import MemberstackError
        from memberstack_cli.output import error

        if isinstance(exc, MemberstackError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
