#!/usr/bin/env python3
"""
FeedStream - Deduplicating Feed Ingestion
=========================================

Main application entry point with CLI interface for checking configuration
and running feeds by hand.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Validate configuration
    python main.py fetch URL [URL ...]             # Run each feed once
    python main.py fetch URL --since 2024-01-01T00:00:00Z --json
"""

import sys
import json
import asyncio
from pathlib import Path
from typing import List, Tuple

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedstream.config.settings import get_settings
from feedstream.ingestion.normalizer import NormalizedRecord
from feedstream.ingestion.recency import parse_timestamp
from feedstream.processing.provider import FeedStreamProvider
from feedstream.processing.ingestion_task import RunResult
from feedstream.utils.logging import configure_application_logging
from feedstream.utils.exceptions import FeedStreamError, TimestampParseError

console = Console()


def _setup_logging(debug: bool) -> None:
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """FeedStream - deduplicating feed ingestion."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate environment configuration."""
    console.print("[bold blue]🔧 Checking FeedStream Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FeedStreamError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    provider = settings.provider
    table.add_row("Connection timeout", f"{provider.timeout_ms} ms")
    table.add_row("Read timeout", f"{provider.read_timeout_ms} ms" if provider.read_timeout_ms else "none")
    table.add_row("Perpetual mode", str(provider.perpetual))
    table.add_row("Published since", provider.published_since.isoformat() if provider.published_since else "any time")
    table.add_row("Queue size", str(provider.queue_size))
    table.add_row("Concurrent sources", str(provider.max_concurrent_sources))
    table.add_row("Dedup max sources", str(settings.dedup.max_sources or "unbounded"))
    table.add_row("Log level", settings.get_effective_log_level())
    table.add_row("Log file", settings.logging.file_path or "disabled")
    table.add_row("Sources", "\n".join(settings.sources) or "none")

    console.print(table)
    console.print("[bold green]✅ Configuration is valid[/bold green]")


async def _run_and_collect(provider: FeedStreamProvider) -> Tuple[List[RunResult], List[NormalizedRecord]]:
    """Run every source once while consuming the queue."""
    records: List[NormalizedRecord] = []

    async def consume():
        while True:
            records.append(await provider.queue.get())
            provider.queue.task_done()

    consumer = asyncio.create_task(consume())
    try:
        results = await provider.run_once()
        await provider.queue.join()
    finally:
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)

    return results, records


def _print_results(results: List[RunResult]) -> None:
    table = Table(title="Run Summary")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Fetched", justify="right")
    table.add_column("Published", justify="right", style="green")
    table.add_column("Too old", justify="right")
    table.add_column("Seen before", justify="right")

    for result in results:
        if result.success:
            status = "✅ ok"
        else:
            status = f"❌ {result.error}" + (" (retryable)" if result.retryable else "")
        table.add_row(
            result.source_url,
            status,
            str(result.entries_fetched),
            str(result.published),
            str(result.rejected_recency),
            str(result.rejected_dedup),
        )

    console.print(table)


@cli.command()
@click.argument('urls', nargs=-1, required=False)
@click.option('--since', help='Only publish entries published after this ISO 8601 instant')
@click.option('--timeout-ms', type=int, help='Connection timeout in milliseconds')
@click.option('--perpetual', is_flag=True, help='Suppress entries seen in the previous run')
@click.option('--json', 'as_json', is_flag=True, help='Print records as JSON lines')
@click.pass_context
def fetch(ctx, urls, since, timeout_ms, perpetual, as_json):
    """Run each feed once and print the queued records."""
    _setup_logging(ctx.obj.get('debug', False))
    settings = get_settings()

    sources = list(urls) or settings.sources
    if not sources:
        console.print("[bold red]❌ No feed URLs given and FEEDSTREAM_SOURCES is empty[/bold red]")
        sys.exit(2)

    published_since = None
    if since:
        try:
            published_since = parse_timestamp(since)
        except TimestampParseError as e:
            raise click.BadParameter(str(e), param_hint='--since')

    try:
        provider = FeedStreamProvider(
            sources,
            published_since=published_since,
            timeout_ms=timeout_ms,
            perpetual=perpetual or None,
        )
        results, records = asyncio.run(_run_and_collect(provider))
    except FeedStreamError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    if as_json:
        for record in records:
            click.echo(json.dumps(record, ensure_ascii=False, default=str))
    else:
        table = Table(title=f"{len(records)} Records")
        table.add_column("Published", style="cyan")
        table.add_column("Title")
        table.add_column("Id", style="dim")
        for record in records:
            table.add_row(
                record.get("publishedDate", "-"),
                record.get("title", ""),
                record.get("uri") or record.get("link", ""),
            )
        console.print(table)

    _print_results(results)

    if not any(r.success for r in results):
        sys.exit(1)


if __name__ == '__main__':
    cli()
