"""
CLI interface for Machine Log.

Provides command-line access to the log folders and documents.
"""

import logging
import sys
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from machine_log.config.loader import (
    load_settings,
    read_settings,
    resolve_log_folder,
    save_settings_if_needed
)
from machine_log.core.coordinator import ProductionEvents
from machine_log.core.status import StaticMachineStatus
from machine_log.storage.documents import (
    MACHINE_TIME_DOCUMENT,
    PRODUCTION_DOCUMENT,
    format_timespan,
    machine_state_from_document,
    production_from_document
)
from machine_log.storage.store import DocumentStore

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DEFAULT_DATA_FOLDER = str(Path.home() / ".machine-log")

DataFolderOption = typer.Option(
    DEFAULT_DATA_FOLDER,
    "--data-folder",
    "-d",
    envvar="MACHINE_LOG_HOME",
    help="Host data folder holding settings.json"
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Machine Log CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if ctx.invoked_subcommand is None:
        console.print("Machine Log - Use --help to see available commands")


@app.command()
def init(data_folder: str = DataFolderOption):
    """Create the log folders and write settings on first run."""
    try:
        settings = load_settings(data_folder)
        if save_settings_if_needed(data_folder, settings):
            console.print(f"[green]✓[/] Settings written to {data_folder}")
        else:
            console.print("[green]✓[/] Existing settings kept")
        console.print(f"Log folder: {resolve_log_folder(settings, data_folder)}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing machine log:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(
    data_folder: str = DataFolderOption,
    days: int = typer.Option(7, "--days", "-n", help="Number of recent daily logs to show")
):
    """Show persisted production and machine time statistics."""
    try:
        settings = read_settings(data_folder)
        store = DocumentStore(str(resolve_log_folder(settings, data_folder)))

        console.print(f"\n[bold]Storage location:[/bold] {settings.storage_location}")
        console.print(f"[bold]Flush interval:[/bold] {settings.time_interval} ms")

        production_data = store.read(PRODUCTION_DOCUMENT)
        machine_data = store.read(MACHINE_TIME_DOCUMENT)
        if production_data is None and machine_data is None:
            console.print("\n[bold yellow]No machine log data found[/]")
            console.print("Run the host with machine logging enabled, or `machine-log record`.\n")
            sys.exit(EXIT_CODE_PASS)

        if production_data is not None:
            _display_production(production_from_document(production_data))
        if machine_data is not None:
            _display_machine_time(machine_state_from_document(machine_data), days)
        sys.exit(EXIT_CODE_PASS)
    except ValueError as e:
        console.print(f"[red]Malformed document:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def record(
    data_folder: str = DataFolderOption,
    power_on_hours: float = typer.Option(..., "--power-on-hours", help="Cumulative power-on time"),
    pump_on_hours: float = typer.Option(..., "--pump-on-hours", help="Cumulative pump-on time"),
    strokes: int = typer.Option(..., "--strokes", help="Cumulative stroke count")
):
    """
    Reconcile one machine counter reading into the log.

    For hosts without a resident process: loads state, reconciles the given
    cumulative counters into today's entry, and saves.
    """
    machine_status = StaticMachineStatus(
        power_on_time=timedelta(hours=power_on_hours),
        pump_on_time=timedelta(hours=pump_on_hours),
        stroke_count=strokes
    )
    events = ProductionEvents(data_folder, machine_status)
    try:
        events.initialize()
        events.uninitialize()
        console.print(f"[green]✓[/] Machine time recorded in {events.log_folder}")
        sys.exit(EXIT_CODE_PASS)
    except OSError as e:
        console.print(f"[red]Error writing machine log:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _display_production(parts):
    table = Table(title="Production")
    table.add_column("Part")
    table.add_column("Time taken", justify="right")
    table.add_column("Parts done", justify="right")
    for name, stat in sorted(parts.items()):
        table.add_row(name, format_timespan(stat.total_time), str(stat.count))
    console.print(table)


def _display_machine_time(state, days: int):
    """Display the all-time total followed by the most recent daily logs."""
    table = Table(title="Machine time")
    table.add_column("Date")
    table.add_column("Power on", justify="right")
    table.add_column("Pump on", justify="right")
    table.add_column("Strokes", justify="right")
    table.add_column("Parts done", justify="right")

    recent = state.history[-days:] if days > 0 else []
    for entry in recent:
        usage = entry.usage
        table.add_row(
            entry.date.isoformat(),
            format_timespan(usage.power_on_time),
            format_timespan(usage.pump_on_time),
            str(usage.stroke),
            str(usage.parts_done)
        )
    total = state.total
    table.add_row(
        "[bold]Total[/bold]",
        format_timespan(total.power_on_time),
        format_timespan(total.pump_on_time),
        str(total.stroke),
        str(total.parts_done)
    )
    console.print(table)


if __name__ == "__main__":
    app()
