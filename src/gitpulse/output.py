"""Terminal output for gitpulse.

Data (notification tables, issue and pull request details, JSON) is written
to stdout. Status lines, warnings, errors and hints go to stderr, so piping
``gitpulse notifications --plain`` into another tool only ever sees data.

Rich styling is used when stdout is a terminal and colour is allowed:
``NO_COLOR`` unset, ``TERM`` not ``dumb``, no ``--no-color``. Otherwise data
is tab separated and diagnostics are bare lines. Every stderr line passes
through :func:`gitpulse.logs.redact` first.

Commands call the module-level helpers (:func:`info`, :func:`error`,
:func:`print_table`, ...), which forward to the :class:`OutputManager`
installed by :func:`~gitpulse.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitpulse.logs import redact


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` becomes ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Writes data to stdout and diagnostics to stderr.

    Args:
        format: Requested format. ``AUTO`` is resolved once, here.
        no_color: Force unstyled output.
        quiet: Drop info, success and hint lines. Warnings and errors stay.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose
        if format is OutputFormat.AUTO:
            styled = _stdout_is_terminal() and not self._no_color
            format = OutputFormat.RICH if styled else OutputFormat.PLAIN
        self._format = format

        self._out = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
            highlight=False,
        )
        self._err = Console(file=sys.stderr, no_color=self._no_color, highlight=False)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # --- stdout ---

    def print_data(self, text: str) -> None:
        sys.stdout.write(text + "\n")
        sys.stdout.flush()

    def format_response(self, data: Any) -> None:
        """Write one record (a dict) or a list of values to stdout.

        RICH shows a dict as an aligned two-column grid; PLAIN writes one
        ``key<TAB>value`` line per field; JSON writes the data unchanged.
        Nested values are shown as compact JSON in the first two.
        """
        if self._format is OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format is OutputFormat.RICH and isinstance(data, dict):
            grid = Table.grid(padding=(0, 2))
            grid.add_column(style="bold")
            grid.add_column()
            for key, value in data.items():
                grid.add_row(escape(str(key)), escape(_cell(value)))
            self._out.print(grid)
        else:
            for line in _plain_lines(data):
                self.print_data(line)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows as a Rich table, a JSON array of objects, or TSV with a header line."""
        if self._format is OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
        elif self._format is OutputFormat.RICH:
            table = Table(*headers, title=title, header_style="bold cyan")
            for row in rows:
                table.add_row(*(escape(cell) for cell in row))
            self._out.print(table)
        else:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))

    # --- stderr ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diag(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diag(message, style="green")

    def warning(self, message: str) -> None:
        self._diag(message, prefix="Warning:", style="yellow")

    def error(self, message: str) -> None:
        self._diag(message, prefix="Error:", style="bold red")

    def suggest(self, message: str) -> None:
        """Next-step hint, e.g. which command to run."""
        if not self._quiet:
            self._diag(f"→ {message}", style="dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diag(f"[debug] {message}", style="dim")

    def _diag(self, message: str, prefix: str = "", style: Optional[str] = None) -> None:
        text = redact(message)
        if self._no_color:
            sys.stderr.write(f"{prefix} {text}\n" if prefix else f"{text}\n")
            sys.stderr.flush()
            return
        markup = escape(text)
        if prefix:
            markup = f"[{style}]{prefix}[/{style}] {markup}"
        elif style:
            markup = f"[{style}]{markup}[/{style}]"
        self._err.print(markup, soft_wrap=True)


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _plain_lines(data: Any) -> Iterator[str]:
    if isinstance(data, dict):
        for key, value in data.items():
            yield f"{key}\t{_cell(value)}"
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                yield "\t".join(_cell(v) for v in item.values())
            else:
                yield _cell(item)
    else:
        yield _cell(data)


def _stdout_is_terminal() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _color_disabled_by_env() -> bool:
    """``NO_COLOR`` set to anything, or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager; a default one is created on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager so the next call builds one on the current streams."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
