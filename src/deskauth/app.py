"""Typer application and CLI entry point for deskauth.

The ``deskauth`` command is a small host for the login core: it reads the
provider settings from the config file and environment, drives
:class:`~deskauth.auth.orchestrator.AuthOrchestrator` through a browser
login and prints the resulting session.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, registers the built-in
commands and invokes the Typer app. A :class:`~deskauth.exceptions.DeskauthError`
that escapes a command exits with the error's ``exit_code``; anything else
is written to a crash log under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from deskauth import __version__
from deskauth.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="deskauth",
    help="Browser-based OAuth2 login (Authorization Code + PKCE) for desktop apps.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"deskauth {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and log records."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~deskauth.output.OutputManager` and routes
    the library's log records to stderr.
    """
    from deskauth.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(output)


def register_commands(target: typer.Typer) -> None:
    """Attach the built-in commands to *target*."""
    from deskauth.commands.auth import login_command, logout_command, manual_command
    from deskauth.commands.config import config_app

    target.command("login")(login_command)
    target.command("manual")(manual_command)
    target.command("logout")(logout_command)
    target.add_typer(config_app, name="config", help="Provider configuration.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to disk and return the log file path."""
    from deskauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``deskauth`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands(app)
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from deskauth.exceptions import DeskauthError
        from deskauth.output import error

        if isinstance(exc, DeskauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
