"""Typer application and CLI entry point for apiguard.

The CLI is a thin shell over :class:`~apiguard.client.api_client.ApiClient`:

    apiguard call boards/retrieve -P boardID=abc
    apiguard list posts/list posts -P boardID=abc --max-total 100
    apiguard strategy posts/list
    apiguard config show

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, runs the app, and turns
any :class:`~apiguard.exceptions.ApiGuardError` into an error line on
stderr plus the matching exit code.
"""

from __future__ import annotations

import json
import signal
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import typer

from apiguard import __version__
from apiguard.exceptions import ApiGuardError, InvalidUsageError
from apiguard.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="apiguard",
    help="Resilient, cached, paginated access to a rate-limited JSON API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Inspect the effective configuration.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"apiguard {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to a JSON or YAML config file."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the API base URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and stash shared options in ``ctx.obj``."""
    from apiguard.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["base_url"] = base_url


def parse_params(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Turn ``key=value`` pairs into request params.

    Values that parse as JSON (numbers, booleans, lists, objects) are
    decoded; anything else is kept as a string.

    Raises:
        InvalidUsageError: If a pair has no ``=``.
    """
    params: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got {pair!r}")
        try:
            params[key] = json.loads(raw)
        except json.JSONDecodeError:
            params[key] = raw
    return params


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Report an :class:`ApiGuardError` on stderr and exit with its code."""
    try:
        yield
    except ApiGuardError as exc:
        from apiguard.output import get_output

        get_output().report(exc)
        raise typer.Exit(code=exc.exit_code) from exc


def _run_with_client(ctx: typer.Context, fn: Any) -> Any:
    from apiguard.client import ApiClient, SyncTransport
    from apiguard.config import resolve_config, resolve_credential

    config = resolve_config(ctx.obj.get("config_path"), ctx.obj.get("base_url"))
    api_key = resolve_credential(config.api_key_source)
    with SyncTransport(config, api_key) as transport:
        return fn(ApiClient(transport, config))


@app.command("call")
def call_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Endpoint name, e.g. 'boards/retrieve'."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Request parameter as key=value (repeatable)."
    ),
) -> None:
    """Call one endpoint (cached and retried) and print the response."""
    from apiguard.output import format_response

    with _exit_on_error():
        params = parse_params(param)
        result = _run_with_client(ctx, lambda client: client.call(endpoint, params or None))
    format_response(result)


@app.command("list")
def list_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="List endpoint, e.g. 'posts/list'."),
    item_key: str = typer.Argument(help="Key of the item array in each response, e.g. 'posts'."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Filter parameter as key=value (repeatable)."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Items per page."),
    max_total: Optional[int] = typer.Option(
        None, "--max-total", min=0, help="Stop after this many items."
    ),
    strategy: Optional[str] = typer.Option(
        None, "--strategy", help="Override pagination: cursor, skip or none."
    ),
) -> None:
    """Walk a list endpoint page by page and print every item."""
    from apiguard.models import PaginationStrategy
    from apiguard.output import format_response, info

    with _exit_on_error():
        params = parse_params(param)
        chosen: Optional[PaginationStrategy] = None
        if strategy is not None:
            try:
                chosen = PaginationStrategy(strategy)
            except ValueError as exc:
                raise InvalidUsageError(f"Unknown pagination strategy: {strategy}") from exc

        items = _run_with_client(
            ctx,
            lambda client: client.collect(
                endpoint, item_key, params or None,
                limit=limit, max_total=max_total, strategy=chosen,
            ),
        )
    info(f"Fetched {len(items)} item(s) from {endpoint}")
    format_response(items)


@app.command("strategy")
def strategy_command(
    resource: str = typer.Argument(help="Resource name, e.g. 'posts/list'."),
) -> None:
    """Print the pagination strategy used for a resource."""
    from apiguard.output import get_output
    from apiguard.pagination import strategy_for

    get_output().print_data(strategy_for(resource).value)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration after precedence resolution."""
    from apiguard.config import get_config_dir, resolve_config
    from apiguard.output import format_response, info

    with _exit_on_error():
        config = resolve_config(ctx.obj.get("config_path"), ctx.obj.get("base_url"))
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """Console-script entry point.

    Commands translate :class:`~apiguard.exceptions.ApiGuardError` into an
    exit code themselves; this catches whatever escapes them.

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
    except Exception as exc:
        from apiguard.output import get_output

        if isinstance(exc, ApiGuardError):
            get_output().report(exc)
            sys.exit(exc.exit_code)
        get_output().error(f"Unexpected error: {exc.__class__.__name__}: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)


if __name__ == "__main__":
    main()
