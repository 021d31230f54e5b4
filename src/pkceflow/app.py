"""Typer application and CLI entry point for pkceflow.

This module wires together the top-level Typer application and registers
the built-in commands (``login``, ``authorize-url``, ``exchange``,
``userinfo``, ``pkce``, ``discover``, ``parse-redirect`` and the
``profile`` group).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer
app. :class:`~pkceflow.exceptions.PkceflowError` exits with its own code;
any other exception is written to a crash log under the data directory.

See Also:
    :mod:`pkceflow.config`: Profile and global configuration resolution.
    :mod:`pkceflow.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from pkceflow import __version__
from pkceflow.commands.profile import profile_app
from pkceflow.commands.signin import (
    authorize_url_command,
    exchange_command,
    login_command,
    userinfo_command,
)
from pkceflow.commands.tools import discover_command, parse_redirect_command, pkce_command
from pkceflow.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="pkceflow",
    help="OpenID Connect sign-in with Authorization Code + PKCE.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("login")(login_command)
app.command("authorize-url")(authorize_url_command)
app.command("exchange")(exchange_command)
app.command("userinfo")(userinfo_command)
app.command("pkce")(pkce_command)
app.command("discover")(discover_command)
app.command("parse-redirect")(parse_redirect_command)
app.add_typer(profile_app, name="profile", help="Manage saved client profiles.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pkceflow {__version__}")
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
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~pkceflow.output.OutputManager` from
    CLI flags and routes library log records to stderr (``DEBUG`` with
    ``--verbose``, ``WARNING`` otherwise).
    """
    from pkceflow.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)


def _configure_logging(verbose: bool) -> None:
    # Without --verbose, warnings reach stderr through logging's last-resort handler
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
            force=True,
        )


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from pkceflow.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``pkceflow`` console script.

    Unhandled :class:`~pkceflow.exceptions.PkceflowError` instances cause
    a clean exit with the error's ``exit_code``. All other exceptions
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
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from pkceflow.exceptions import PkceflowError
        from pkceflow.output import error

        if isinstance(exc, PkceflowError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
