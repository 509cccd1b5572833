# cli.py
# Description: Command-line entry point for zotero_patch.
#
# Imports
import asyncio
import signal
import sys
from typing import Optional, Sequence
#
# 3rd-Party Libraries
import click
import httpx
from loguru import logger
from rich.console import Console
from rich.table import Table
#
# Local Imports
from . import __version__
from .Constants import EXIT_OK, EXIT_SYNC_FAILED, EXIT_CONFIG_ERROR, EXIT_INPUT_ERROR, EXIT_CANCELLED
from .CSV.csv_reader import CSVRecordSource
from .Logging_Config import setup_logger
from .Metrics.metrics_logger import log_resource_usage
from .Sync.batch_coordinator import BatchCoordinator, chunk_records
from .Sync.exceptions import SyncError, SyncCancelledError
from .Sync.pacing import AsyncioSleeper, Sleeper
from .Sync.sync_protocol import SyncProtocol
from .config import ZoteroSettings, load_settings
from .zotero_api.client import ZoteroAPIClient
from .zotero_api.exceptions import ConfigurationError, RecordSourceError, ZoteroAPIError
from .zotero_api.schemas import PatchRecord, SyncReport
#
########################################################################################################################
#
# Functions:

console = Console()


def _install_cancel_handler(cancel_event: asyncio.Event):
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # add_signal_handler is unavailable on Windows event loops
        logger.debug("SIGINT handler not installed; Ctrl+C will abort without a cancelled report")


async def run_sync(
    settings: ZoteroSettings,
    records: Sequence[PatchRecord],
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleeper: Optional[Sleeper] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> SyncReport:
    """Wires client, protocol and coordinator from settings and applies every record."""
    cancel_event = cancel_event or asyncio.Event()
    async with ZoteroAPIClient.from_settings(settings, transport=transport) as client:
        protocol = SyncProtocol(
            client,
            policy=settings.retry,
            sleeper=sleeper or AsyncioSleeper(cancel_event),
            version_source=settings.version_source,
        )
        coordinator = BatchCoordinator(protocol, batch_size=settings.batch_size, cancel_event=cancel_event)
        return await coordinator.sync_all(records)


async def _run_sync_with_signals(settings: ZoteroSettings, records: Sequence[PatchRecord]) -> SyncReport:
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)
    return await run_sync(settings, records, cancel_event=cancel_event)


async def fetch_library_version(settings: ZoteroSettings,
                                transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    async with ZoteroAPIClient.from_settings(settings, transport=transport) as client:
        protocol = SyncProtocol(client, policy=settings.retry, version_source=settings.version_source)
        return await protocol.fetch_version()


def _print_report(report: SyncReport):
    table = Table(title=f"Sync Report ({report.records_applied}/{report.total_records} records applied)")
    table.add_column("Batch", justify="right", style="dim")
    table.add_column("Records", justify="right")
    table.add_column("Status")
    table.add_column("HTTP", justify="right")
    table.add_column("Version", justify="right")
    table.add_column("Conflicts", justify="right")
    table.add_column("Rate Limits", justify="right")

    styles = {"success": "green", "failure": "red", "cancelled": "yellow"}
    for outcome in report.batches:
        table.add_row(
            str(outcome.index + 1),
            str(outcome.size),
            f"[{styles[outcome.status]}]{outcome.status}[/]",
            str(outcome.http_status or "-"),
            str(outcome.version if outcome.version is not None else "-"),
            str(outcome.conflicts),
            str(outcome.rate_limit_waits),
        )
    console.print(table)


def _load_settings_or_exit(config_path: Optional[str]) -> ZoteroSettings:
    try:
        return load_settings(config_path=config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        sys.exit(EXIT_CONFIG_ERROR)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="Path to a TOML config file (defaults to ~/.config/zotero_patch/config.toml)")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str]):
    """Bulk-update Zotero group library items from a CSV file."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--csv", "csv_path", default=None, type=click.Path(dir_okay=False),
              help="CSV with key,title,extra columns (overrides ZOTERO_CSV_PATH)")
@click.option("--dry-run", is_flag=True, help="Read and batch the CSV without contacting the API")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def sync(ctx: click.Context, csv_path: Optional[str], dry_run: bool, log_level: Optional[str]):
    """Apply every CSV row to the library, 50 items per request."""
    settings = _load_settings_or_exit(ctx.obj.get("config_path"))
    setup_logger(log_level or settings.log_level, settings.log_file, settings.metrics_file)

    source_path = csv_path or settings.csv_path
    if not source_path:
        console.print("[red]Configuration error:[/] no CSV given; pass --csv or set ZOTERO_CSV_PATH")
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        records = CSVRecordSource(source_path).extract()
    except RecordSourceError as e:
        console.print(f"[red]Input error:[/] {e}")
        sys.exit(EXIT_INPUT_ERROR)

    if dry_run:
        batches = list(chunk_records(records, settings.batch_size))
        console.print(f"[bold blue]Dry run[/]: {len(records)} records in {len(batches)} batch(es)")
        for index, batch in enumerate(batches):
            console.print(f"  batch {index + 1}: {len(batch)} records ({batch[0].key} .. {batch[-1].key})")
        sys.exit(EXIT_OK)

    try:
        report = asyncio.run(_run_sync_with_signals(settings, records))
    except SyncCancelledError as e:
        if e.report:
            _print_report(e.report)
        console.print(f"[yellow]Cancelled:[/] {e}")
        sys.exit(EXIT_CANCELLED)
    except SyncError as e:
        if e.report:
            _print_report(e.report)
        console.print(f"[red]Sync failed at {e}[/]")
        sys.exit(EXIT_SYNC_FAILED)
    finally:
        log_resource_usage(labels={"command": "sync"})

    _print_report(report)
    console.print("[green]All batches applied.[/]")


@main.command()
@click.pass_context
def version(ctx: click.Context):
    """Print the library's current version."""
    settings = _load_settings_or_exit(ctx.obj.get("config_path"))
    setup_logger(settings.log_level)
    try:
        library_version = asyncio.run(fetch_library_version(settings))
    except (SyncError, ZoteroAPIError) as e:
        console.print(f"[red]Could not read library version:[/] {e}")
        sys.exit(EXIT_SYNC_FAILED)
    console.print(f"Group {settings.group_id} is at library version [bold]{library_version}[/]")

#
# End of cli.py
########################################################################################################################
