"""Terminal rendering: API payloads on stdout, diagnostics on stderr.

Only payloads (decoded responses and collected list items) ever reach
stdout, so ``apiguard list posts/list posts --json | jq`` always sees clean
JSON. Retry notices, cache hits and misses, warnings and errors are
written to stderr (see `clig.dev <https://clig.dev/>`_).

Payload rendering depends on :class:`OutputFormat`:

* ``JSON`` -- pretty-printed JSON;
* ``PLAIN`` -- tab-separated lines, one per item or key;
* ``RICH`` -- a table for lists of records, highlighted JSON otherwise.

Colour is disabled by ``NO_COLOR``, ``TERM=dumb`` or ``--no-color``.

The retry executor and the API client report through the module-level
helpers (:func:`debug`, :func:`warning`, ...). Those delegate to a global
:class:`OutputManager` which the CLI replaces via :func:`set_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Iterator, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from apiguard.exceptions import ApiGuardError, DomainError


class OutputFormat(str, Enum):
    """Payload rendering styles.

    ``AUTO`` becomes ``RICH`` on a colour-capable TTY and ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders payloads and diagnostics for one CLI invocation.

    Args:
        format: Requested payload format; ``AUTO`` is resolved immediately.
        no_color: Turn off colour and styling.
        quiet: Drop :meth:`info` messages.
        verbose: Show :meth:`debug` messages (retry and cache traces).
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        rich_stdout = self._format == OutputFormat.RICH
        self._out = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_stdout)
        self._err = Console(file=sys.stderr, no_color=self._no_color, stderr=True, highlight=False)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- payloads (stdout) ------------------------------------------------

    def format_response(self, data: Any) -> None:
        """Render a decoded payload (dict, list of items, or scalar) to stdout."""
        if self._format == OutputFormat.JSON:
            self._render_json(data)
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        else:
            self._render_rich(data)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    # -- diagnostics (stderr) ---------------------------------------------

    def info(self, message: str) -> None:
        """Progress or summary line. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._diagnostic(message)

    def warning(self, message: str) -> None:
        self._diagnostic(message, "Warning: ", "yellow")

    def error(self, message: str) -> None:
        self._diagnostic(message, "Error: ", "bold red")

    def debug(self, message: str) -> None:
        """Trace line, shown only with ``--verbose``."""
        if self._verbose:
            self._diagnostic(message, "[debug] ", "dim")

    def report(self, exc: ApiGuardError) -> None:
        """Print *exc* as an error; with ``--verbose`` also how it was classified."""
        self.error(str(exc))
        if isinstance(exc, DomainError):
            self.debug(
                f"kind={exc.kind.value} http_status={exc.http_status} "
                f"retryable={exc.retryable}"
            )

    def _diagnostic(self, message: str, prefix: str = "", style: str = "") -> None:
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            # Text, not markup: API messages may contain square brackets.
            self._err.print(Text.assemble((prefix, style), message))

    # -- renderers ----------------------------------------------------------

    def _render_json(self, data: Any) -> None:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                self.print_data(data)
                return
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def _render_rich(self, data: Any) -> None:
        if _is_record_list(data):
            self._out.print(_records_table(data))
        elif isinstance(data, (dict, list)):
            dumped = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._out.print(Syntax(dumped, "json", theme="monokai", word_wrap=True))
        elif data is not None:
            self._out.print(Text(str(data)))


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _plain_lines(data: Any) -> Iterator[str]:
    """Yield ``key<TAB>value`` for a dict, one tab-joined row per list item."""
    if isinstance(data, dict):
        for key, value in data.items():
            yield f"{key}\t{_cell(value)}"
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                yield "\t".join(_cell(v) for v in item.values())
            else:
                yield _cell(item)
    elif data is not None:
        yield _cell(data)


def _is_record_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and all(isinstance(i, dict) for i in data)


def _records_table(records: list[dict[str, Any]]) -> Table:
    columns: list[str] = []
    for record in records:
        columns.extend(key for key in record if key not in columns)
    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column)
    for record in records:
        table.add_row(*(_cell(record[c]) if c in record else "" for c in columns))
    return table


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb`` turns colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# -- global instance ----------------------------------------------------------

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; the next :func:`get_output` builds a fresh one."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def info(message: str) -> None:
    get_output().info(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
