"""gitpulse command line: the Typer app and the ``gitpulse`` console script.

Commands are registered here; the root callback turns the global flags into
an :class:`~gitpulse.output.OutputManager` and a first log handler before any
command runs.

:func:`main` is what ``pyproject.toml`` points the script at. A
:class:`~gitpulse.exceptions.GitpulseError` that escapes a command becomes a
single ``Kind: message`` line and that error's exit code. Anything else is a
bug: the traceback goes to a crash file under the data directory, with
secrets redacted.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from gitpulse import __version__
from gitpulse.commands.auth import auth_app
from gitpulse.commands.inbox import issue_command, notifications_command, pr_command
from gitpulse.exceptions import GitpulseError
from gitpulse.exit_codes import EXIT_GENERIC_FAILURE

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="gitpulse",
    help="Read your GitHub notifications, issues and pull requests from the terminal.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(auth_app, name="auth", help="Sign in and manage the stored token.")
app.command("notifications")(notifications_command)
app.command("issue")(issue_command)
app.command("pr")(pr_command)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"gitpulse {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Print the version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Write data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write data as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Never style output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print data, warnings and errors."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug output and logs."),
) -> None:
    """Apply the global flags.

    Logging starts at ``warning``; commands switch to ``GITPULSE_LOG_LEVEL``
    once they have loaded the configuration. ``--verbose`` means ``debug``
    throughout.
    """
    from gitpulse.logs import configure_logging
    from gitpulse.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging("warning", verbose=verbose)


def _exit_on_sigint() -> None:
    def _on_sigint(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _on_sigint)


def _save_crash_report() -> Path:
    """Write the active exception's redacted traceback under ``<data dir>/logs``."""
    from gitpulse.config import get_data_dir
    from gitpulse.logs import redact

    crash_dir = get_data_dir() / "logs"
    crash_dir.mkdir(parents=True, exist_ok=True)
    report = crash_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    report.write_text(redact(traceback.format_exc()), encoding="utf-8")
    return report


def main() -> None:
    """Console-script entry point. Always ends in :class:`SystemExit`."""
    from gitpulse.output import error

    _exit_on_sigint()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except GitpulseError as exc:
        error(f"{exc.kind}: {exc}")
        sys.exit(exc.exit_code)
    except Exception:
        report = _save_crash_report()
        error(f"Unexpected error. Details were written to {report}")
        sys.exit(EXIT_GENERIC_FAILURE)
