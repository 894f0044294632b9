"""Command-line entry point for the teal.fm play importer."""

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click
from pydantic import ValidationError

from teal_importer.cancellation import CancellationToken
from teal_importer.exceptions import ImporterError
from teal_importer.service import ImportService
from teal_importer.settings import ImporterSettings
from teal_shared.logging import configure_logging
from teal_shared.records.parser import ExportFormatError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _register_shutdown_signals(loop: asyncio.AbstractEventLoop, cancel_token: CancellationToken) -> None:
    """Register signal handlers for graceful shutdown on both Unix and Windows."""

    def _signal_handler_sync(signum: int, _frame: object) -> None:
        """Stdlib signal handler (runs in main thread). Thread-safe bridge into asyncio."""
        logger.info("Shutdown signal received (signal %d)", signum)
        loop.call_soon_threadsafe(cancel_token.cancel)

    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, cancel_token.cancel)
    else:
        # loop.add_signal_handler is not supported on Windows
        signal.signal(signal.SIGTERM, _signal_handler_sync)
        signal.signal(signal.SIGINT, _signal_handler_sync)


def _load_settings() -> ImporterSettings:
    try:
        return ImporterSettings()
    except ValidationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc


def _run(settings: ImporterSettings, job: Callable[[ImportService], Awaitable[T]]) -> T:
    async def _main() -> T:
        cancel_token = CancellationToken()
        _register_shutdown_signals(asyncio.get_running_loop(), cancel_token)
        service = ImportService(settings, cancel_token=cancel_token)
        return await job(service)

    try:
        return asyncio.run(_main())
    except (ImporterError, ExportFormatError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Import listening history into a teal.fm (AT Protocol) repository."""
    settings = _load_settings()
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_FORMAT == "json")
    ctx.obj = settings


@cli.command("import")
@click.argument("export_path", type=click.Path(exists=True, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Plan and preview without writing")
@click.option("--batch-delay", type=float, default=None, help="Seconds between batches")
@click.pass_obj
def import_command(settings: ImporterSettings, export_path: Path, dry_run: bool, batch_delay: float | None) -> None:
    """Publish plays from a Last.fm CSV or Spotify export that are not yet in the repo."""
    result = _run(settings, lambda service: service.run_import(export_path, dry_run=dry_run, batch_delay=batch_delay))

    click.echo(f"Published: {result.success_count}  Failed: {result.error_count}  Cancelled: {result.cancelled}")
    if result.cancelled:
        click.echo("Run the same command again to resume.")
    if result.error_count:
        sys.exit(1)


@cli.command("dedupe")
@click.option("--dry-run", is_flag=True, help="Report duplicates without deleting")
@click.pass_obj
def dedupe_command(settings: ImporterSettings, dry_run: bool) -> None:
    """Delete duplicate plays from the repo, keeping the first copy of each."""
    result = _run(settings, lambda service: service.run_dedupe(dry_run=dry_run))
    click.echo(f"Duplicates: {result.total_duplicate_records}  Removed: {result.records_removed}")


if __name__ == "__main__":
    cli()
