"""
CLI interface for LLM Replay.

Provides command-line access to request replay and comparison.
"""

import json
import logging
import sys
from typing import Optional

import structlog
import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from llm_replay.config.loader import ReplayConfig, load_replay_config
from llm_replay.core.comparison import (
    ComparisonResult,
    DeltaDirection,
    delta_direction,
)
from llm_replay.core.errors import ReplayError, internal_error_envelope
from llm_replay.core.replay import ReplayEngine, ReplayOptions
from llm_replay.sdk.openai_client import ProviderDispatcher
from llm_replay.storage.db import DEFAULT_DB_PATH
from llm_replay.storage.models import RequestRecord
from llm_replay.storage.repository import (
    ModelRegistry,
    RequestRepository,
    initialize_schema,
)

app = typer.Typer()
console = Console()
logger = structlog.get_logger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_DELTA_STYLES = {
    DeltaDirection.IMPROVEMENT: "green",
    DeltaDirection.REGRESSION: "red",
    DeltaDirection.NEUTRAL: "dim",
}


def _stderr_logger(*args) -> structlog.PrintLogger:
    return structlog.PrintLogger(sys.stderr)


def configure_logging(verbose: bool = False) -> None:
    """Send structured logs to stderr so stdout stays clean for --json output."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
    )


def build_engine(config: ReplayConfig, db_path: str) -> ReplayEngine:
    """Wire a ReplayEngine against a SQLite database."""
    return ReplayEngine(
        requests=RequestRepository(db_path),
        registry=ModelRegistry(db_path),
        dispatcher=ProviderDispatcher(config)
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """LLM Replay CLI."""
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print("LLM Replay - Use --help to see available commands")


@app.command()
def init(
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to SQLite database")
):
    """Initialize the LLM Replay database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def replay(
    record_id: str = typer.Argument(..., help="Internal id of the request to replay"),
    env: str = typer.Option(..., "--env", "-e", help="Environment the request belongs to"),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Replay against this model instead of the original one"
    ),
    route: Optional[str] = typer.Option(
        None,
        "--route",
        "-r",
        help="Record the replay under this route id"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to replay configuration YAML"
    ),
    db: Optional[str] = typer.Option(None, "--db", help="Path to SQLite database"),
    as_json: bool = typer.Option(False, "--json", help="Print the outcome as JSON")
):
    """
    Replay a logged request and compare it with the original.

    The replay is sent once to the live provider and recorded as a new
    request. Provider and network errors are recorded on the replay and do
    not fail the command.
    """
    try:
        config = load_replay_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        engine = build_engine(config, db or config.database)
        options = ReplayOptions(model_override=model, route_id_override=route)
        outcome = engine.replay(record_id, env, options)
    except ReplayError as e:
        _display_error(e.to_dict(), as_json)
        sys.exit(EXIT_CODE_FAIL)
    except Exception:
        logger.exception("replay_unhandled_error", original_id=record_id)
        _display_error(internal_error_envelope(), as_json)
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        _display_comparison(outcome.record, outcome.comparison)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def replays(
    record_id: str = typer.Argument(..., help="Internal id of the original request"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to SQLite database")
):
    """List every replay recorded for an original request."""
    records = RequestRepository(db).list_replays(record_id)
    if not records:
        console.print(f"\n[dim]No replays found for {record_id}.[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Replays of {record_id}")
    table.add_column("Replay ID")
    table.add_column("Request ID")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Cost", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Started")
    for record in records:
        table.add_row(
            record.id,
            record.request_id,
            record.model_identifier,
            _format_status(record.status.value),
            _format_currency(record.total_cost_usd),
            _format_latency(record.duration_ms),
            record.started_at.isoformat(timespec="seconds")
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format a dollar amount with four decimals."""
    return f"${amount:.4f}"


def _format_latency(ms: Optional[int]) -> str:
    if ms is None:
        return "-"
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms}ms"


def _format_tokens(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}k"
    return str(count)


def _format_status(status: str) -> str:
    colour = "green" if status == "success" else "red"
    return f"[{colour}]{status}[/]"


def _format_delta(value: float, formatted: str, lower_is_better: bool) -> str:
    """Colour a delta by whether it is an improvement for the operator."""
    style = _DELTA_STYLES[delta_direction(value, lower_is_better)]
    sign = "+" if value > 0 else ""
    return f"[{style}]{sign}{formatted}[/]"


def _response_body(content: Optional[str]):
    if not content:
        return "[dim]No response content[/]"
    return Text(content)


def _display_comparison(record: RequestRecord, comparison: ComparisonResult):
    """Display the metrics table and both responses side by side."""
    original = comparison.original
    replayed = comparison.replay
    deltas = comparison.deltas

    console.print(f"\n[bold]Replay recorded:[/bold] {record.id} ({record.request_id})")

    table = Table(title="Replay Comparison")
    table.add_column("Metric")
    table.add_column("Original", justify="right")
    table.add_column("Replay", justify="right")
    table.add_column("Delta", justify="right")

    table.add_row("Model", original.model, replayed.model, "")
    table.add_row(
        "Input tokens",
        _format_tokens(original.input_tokens),
        _format_tokens(replayed.input_tokens),
        _format_delta(deltas.input_tokens, str(deltas.input_tokens), lower_is_better=True)
    )
    table.add_row(
        "Output tokens",
        _format_tokens(original.output_tokens),
        _format_tokens(replayed.output_tokens),
        _format_delta(deltas.output_tokens, str(deltas.output_tokens), lower_is_better=False)
    )
    table.add_row(
        "Cost",
        _format_currency(original.total_cost_usd),
        _format_currency(replayed.total_cost_usd),
        _format_delta(deltas.cost_usd, f"{deltas.cost_usd:.4f}", lower_is_better=True)
    )
    table.add_row(
        "Latency",
        _format_latency(original.duration_ms),
        _format_latency(replayed.duration_ms),
        _format_delta(deltas.duration_ms, f"{deltas.duration_ms}ms", lower_is_better=True)
    )
    table.add_row(
        "Status",
        _format_status(original.status),
        _format_status(replayed.status),
        ""
    )
    console.print(table)

    if record.error_code:
        console.print(f"\n[red]Replay error:[/] {record.error_code}")
        if record.error_message:
            console.print(record.error_message, markup=False)

    console.print(Panel(
        _response_body(original.response_content),
        title="Original response"
    ))
    console.print(Panel(
        _response_body(replayed.response_content),
        title="Replay response"
    ))
    if comparison.response_matches:
        console.print("[green]Responses are identical[/]")


def _display_error(envelope: dict, as_json: bool):
    if as_json:
        typer.echo(json.dumps(envelope, indent=2))
        return
    error = envelope["error"]
    console.print(f"[red]Error ({error['status']} {error['code']}):[/] {error['message']}")


if __name__ == "__main__":
    app()
