"""Command-line interface for devclock."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .aggregation import PERIODS
from .app_context import AppContext
from .config import TrackerSettings
from .events import HostEvent
from .models import STATUS_BAR_PERIODS
from .paths import get_db_path, get_log_path
from .reporting import SummaryPrinter
from .server_runner import run_server

app = typer.Typer(help="Local-first coding time tracker.")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the devclock SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _open_context(db_path: Optional[Path]) -> AppContext:
    return AppContext(db_path or get_db_path()).open()


def _minutes_to_ms(minutes: float) -> int:
    return int(round(minutes * 60_000))


@app.command()
def track(
    db_path: Optional[Path] = DB_OPTION,
    tick_seconds: float = typer.Option(
        30.0,
        "--interval",
        min=1.0,
        help="Seconds between periodic flushes and idle checks.",
    ),
    idle_minutes: Optional[float] = typer.Option(
        None,
        "--idle-timeout",
        min=0.0,
        help="Minutes of inactivity before the session ends (0 disables). Saved as a setting.",
    ),
    log_file: bool = typer.Option(
        True,
        "--log-file/--no-log-file",
        help="Also write logs to the devclock log file.",
    ),
) -> None:
    """Track coding time from JSON host events read line by line from stdin.

    Each line is an event such as ``{"type": "active_context_changed",
    "context": {"workspaceName": "app", "workspacePath": "/src/app",
    "languageId": "python", "fileName": "/src/app/main.py"}}``.
    """
    if log_file:
        handler = logging.FileHandler(get_log_path(), encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)

    settings = TrackerSettings.from_intervals(tick_seconds=tick_seconds)
    context = AppContext(
        db_path or get_db_path(),
        settings,
        on_status=lambda text: typer.echo(f"status: {text}", err=True),
        on_persist_failure=lambda message: typer.secho(message, fg=typer.colors.YELLOW, err=True),
    )
    context.open()
    if idle_minutes is not None:
        context.update_idle_timeout(_minutes_to_ms(idle_minutes))
    context.start()

    stream = typer.get_text_stream("stdin")
    try:
        for line_number, line in enumerate(stream, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = HostEvent.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.warning("Ignoring malformed event on line %d: %s", line_number, exc)
                continue
            context.dispatch(event)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping tracker.")
    finally:
        context.shutdown()


@app.command()
def summary(
    period: str = typer.Option("week", "--period", "-p", help="week, month or year."),
    offset: int = typer.Option(
        0, "--offset", help="0 for the current period, -1 for the previous one, and so on."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print a summary for a week, month or year."""
    if period not in PERIODS:
        _fail(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}.")

    result = _open_context(db_path).generate_summary(period, offset)
    if as_json:
        typer.echo(json.dumps(asdict(result) if result is not None else None, indent=2))
        return
    SummaryPrinter(typer.echo).print_summary(result, period)


@app.command()
def today(
    as_json: bool = typer.Option(False, "--json", help="Print the aggregate as JSON."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print today's totals."""
    aggregate = _open_context(db_path).get_or_create_today_aggregate()
    if as_json:
        typer.echo(json.dumps(aggregate.to_dict(), indent=2))
        return
    SummaryPrinter(typer.echo).print_today(aggregate)


@app.command()
def export(
    path: Path = typer.Argument(..., help="File to write the exported JSON to."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Export all tracked data as JSON."""
    context = _open_context(db_path)
    document = context.export_data()
    try:
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    except OSError as exc:
        _fail(f"Could not write {path}: {exc}")
    stats = context.data_stats()
    typer.echo(f"Exported {stats.total_days} days to {path}.")


@app.command("import")
def import_data(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export to merge."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Merge a previous export into the store; imported days replace existing ones."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _fail(f"Could not read {path}: {exc}")

    result = _open_context(db_path).import_data(payload)
    if not result.success:
        _fail(result.message)
    typer.secho(result.message, fg=typer.colors.GREEN)


@app.command()
def settings(
    idle_minutes: Optional[float] = typer.Option(
        None, "--idle-timeout", min=0.0, help="Idle timeout in minutes (0 disables)."
    ),
    show_status_bar: Optional[bool] = typer.Option(
        None, "--show-status-bar/--hide-status-bar", help="Toggle the status text."
    ),
    status_bar_period: Optional[str] = typer.Option(
        None, "--status-bar-period", help="today, week or month."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Show or change the persisted settings."""
    if status_bar_period is not None and status_bar_period not in STATUS_BAR_PERIODS:
        _fail(
            f"Unknown status bar period {status_bar_period!r}; "
            f"expected one of {', '.join(STATUS_BAR_PERIODS)}."
        )

    context = _open_context(db_path)
    current = context.update_settings(
        idle_timeout_ms=_minutes_to_ms(idle_minutes) if idle_minutes is not None else None,
        show_status_bar=show_status_bar,
        status_bar_period=status_bar_period,
    )
    for key, value in current.to_dict().items():
        typer.echo(f"{key}: {value}")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete all tracked data and reset the settings."""
    if not yes and not typer.confirm("Delete all tracked coding time?"):
        raise typer.Exit(code=1)
    _open_context(db_path).clear_all_data()
    typer.echo("All data cleared.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the API."),
    db_path: Optional[Path] = DB_OPTION,
    tick_seconds: float = typer.Option(
        30.0,
        "--interval",
        min=1.0,
        help="Seconds between periodic flushes and idle checks.",
    ),
) -> None:
    """Serve the JSON API with the tracker running in the background."""
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=TrackerSettings.from_intervals(tick_seconds=tick_seconds),
    )
