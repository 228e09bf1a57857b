"""Typer application and CLI entry point for oktadpop.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``users``, ``call``, ``token``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a signal handler, invokes the Typer app
and maps :class:`~oktadpop.exceptions.OktaDpopError` to the exit code the
error carries.

See Also:
    :mod:`oktadpop.config`: Environment configuration read by every command.
    :mod:`oktadpop.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from typing import Any

import typer

from oktadpop import __version__
from oktadpop.commands.call import call_command
from oktadpop.commands.config import config_app
from oktadpop.commands.token import token_app
from oktadpop.commands.users import users_command
from oktadpop.exceptions import OktaDpopError
from oktadpop.exit_codes import EXIT_GENERIC_FAILURE
from oktadpop.output import OutputFormat, OutputManager, error, get_output, set_output


app = typer.Typer(
    name="oktadpop",
    help="Call the Okta management API with DPoP-bound client-credentials tokens.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("users")(users_command)
app.command("call")(call_command)
app.add_typer(token_app, name="token", help="Access tokens and DPoP proofs.")
app.add_typer(config_app, name="config", help="Environment configuration.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"oktadpop {__version__}")
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
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
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

    Initialises the global :class:`~oktadpop.output.OutputManager` from
    CLI flags.

    Args:
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
    """
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``oktadpop`` console script.

    Unhandled :class:`~oktadpop.exceptions.OktaDpopError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions are
    reported as unexpected (with a traceback under ``--verbose``) and exit
    with the generic failure code.

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
        sys.exit(130)
    except OktaDpopError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error: {exc}")
        if get_output().is_verbose:
            sys.stderr.write(traceback.format_exc())
        sys.exit(EXIT_GENERIC_FAILURE)
