"""
CLI interface for Usage Economics.

Provides command-line access to the savings store and the merged
spend/savings reports.
"""

import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console

from usage_economics.config.loader import EconomicsConfig, default_config, load_economics_config
from usage_economics.core.errors import PipelineStageError
from usage_economics.core.periods import Granularity
from usage_economics.core.pipeline import build_reports
from usage_economics.output.report import render_text, reports_to_csv, reports_to_json
from usage_economics.sources.ccusage import CcusageClient
from usage_economics.storage.models import CommandRecord
from usage_economics.storage.repository import (
    SavingsRepository,
    initialize_schema,
    insert_command_record
)
from usage_economics.utils.helpers import setup_logging

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

OUTPUT_FORMATS = ("text", "json", "csv")

config_option = typer.Option(
    None,
    "--config",
    "-c",
    envvar="USAGE_ECONOMICS_CONFIG",
    help="Path to YAML configuration file"
)


def _load_config(config_path: Optional[str]) -> EconomicsConfig:
    """Load configuration or exit with a readable error."""
    if config_path is None:
        return default_config()
    try:
        return load_economics_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Configuration error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _selected_granularities(daily: bool, weekly: bool, monthly: bool, all_: bool) -> List[Granularity]:
    if all_:
        return [Granularity.DAY, Granularity.WEEK, Granularity.MONTH]
    selected = [
        granularity
        for granularity, flag in (
            (Granularity.DAY, daily),
            (Granularity.WEEK, weekly),
            (Granularity.MONTH, monthly),
        )
        if flag
    ]
    return selected or [Granularity.MONTH]


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Usage Economics CLI."""
    setup_logging("DEBUG" if verbose else "WARNING")
    if ctx.invoked_subcommand is None:
        console.print("Usage Economics - Use --help to see available commands")


@app.command()
def init(config_path: Optional[str] = config_option):
    """Initialize the savings database."""
    config = _load_config(config_path)
    try:
        initialize_schema(config.database.path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(config_path: Optional[str] = config_option):
    """Check initialization status of the savings database."""
    config = _load_config(config_path)
    db_path = config.database.path
    if not Path(db_path).exists():
        console.print(f"[yellow]![/] Database not found at {db_path}. Run `usage-economics init`.")
        sys.exit(EXIT_CODE_PASS)

    try:
        count = SavingsRepository(db_path).count_records()
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            console.print(f"[yellow]![/] Database at {db_path} is not initialized. Run `usage-economics init`.")
            sys.exit(EXIT_CODE_PASS)
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] {count:,} command record(s) in {db_path}")


@app.command()
def record(
    command: str = typer.Argument(..., help="Command that was run"),
    input_tokens: int = typer.Option(..., "--input-tokens", "-i", min=0, help="Tokens in the raw output"),
    output_tokens: int = typer.Option(..., "--output-tokens", "-o", min=0, help="Tokens after filtering"),
    exec_time_ms: int = typer.Option(0, "--exec-time-ms", min=0, help="Execution time in milliseconds"),
    config_path: Optional[str] = config_option
):
    """Append a command record to the savings database."""
    config = _load_config(config_path)
    try:
        entry = CommandRecord(
            timestamp=datetime.now(),
            command=command,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            saved_tokens=max(input_tokens - output_tokens, 0),
            exec_time_ms=exec_time_ms
        )
        initialize_schema(config.database.path)
        insert_command_record(entry, config.database.path)
    except (ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error recording command:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Recorded '{command}' ({entry.saved_tokens:,} tokens saved)")


@app.command()
def report(
    daily: bool = typer.Option(False, "--daily", "-d", help="Daily breakdown"),
    weekly: bool = typer.Option(False, "--weekly", "-w", help="Weekly breakdown"),
    monthly: bool = typer.Option(False, "--monthly", "-m", help="Monthly breakdown"),
    all_: bool = typer.Option(False, "--all", "-a", help="Daily, weekly and monthly breakdowns"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text, json or csv"),
    config_path: Optional[str] = config_option
):
    """
    Report spend, savings and cost-per-token economics per period.

    Spend comes from ccusage and savings from the local database. When
    ccusage is unavailable the report still shows savings, with every
    spend-derived value marked N/A.
    """
    output_format = output_format.lower()
    if output_format not in OUTPUT_FORMATS:
        console.print(f"[red]Error:[/] --format must be one of: {', '.join(OUTPUT_FORMATS)}")
        sys.exit(EXIT_CODE_FAIL)

    config = _load_config(config_path)
    spend_source = CcusageClient(
        command=config.spend.command,
        timeout_seconds=config.spend.timeout_seconds
    )
    savings_store = SavingsRepository(
        config.database.path,
        convention=config.savings.week_convention
    )

    try:
        reports = build_reports(
            _selected_granularities(daily, weekly, monthly, all_),
            spend_provider=spend_source,
            savings_provider=savings_store
        )
    except PipelineStageError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if output_format == "json":
        typer.echo(reports_to_json(reports))
    elif output_format == "csv":
        typer.echo(reports_to_csv(reports), nl=False)
    else:
        render_text(reports, console)

    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
