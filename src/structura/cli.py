"""Click-based CLI for structura.

Thin wrapper around library modules. Every command delegates to the price
cache (seeder, reader, store) or to the API server.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from structura.core import ConfigError, load_config

        try:
            ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
    return ctx.obj["config"]


async def _create_store_async(config):
    """Create and initialize storage from config."""
    from structura.prices import create_store

    return await create_store(config.storage)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="STRUCTURA_CONFIG",
    default=None,
    help="Path to structura.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="structura")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Structura: price cache and broker holdings service."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# seed
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--batch-start", type=int, default=0, show_default=True, help="Universe index to start at.")
@click.option("--batch-size", type=int, default=None, help="Symbols per batch. Default: from config.")
@click.option(
    "--clear-first",
    is_flag=True,
    default=False,
    help="Delete each batch's cached rows before re-fetching.",
)
@click.option(
    "--incremental",
    is_flag=True,
    default=False,
    help="Only fetch days newer than each symbol's last cached date.",
)
@click.option("--once", is_flag=True, default=False, help="Process a single batch and stop.")
@click.option(
    "--pause",
    type=float,
    default=2.0,
    show_default=True,
    help="Seconds to wait between batches.",
)
@click.pass_context
def seed(
    ctx: click.Context,
    batch_start: int,
    batch_size: int | None,
    clear_first: bool,
    incremental: bool,
    once: bool,
    pause: float,
) -> None:
    """Seed the price cache from Yahoo Finance, batch by batch."""
    config = _load_config(ctx)

    if not config.seeder.universe:
        console.print("[yellow]Seeder universe is empty. Check config.[/yellow]")
        raise SystemExit(1)

    async def _run():
        from structura.core import SeedError
        from structura.prices import HistoricalSeeder, YahooChartClient

        store = await _create_store_async(config)
        try:
            async with YahooChartClient(config.upstream) as client:
                seeder = HistoricalSeeder(store, client, config.seeder)
                cursor: int | None = batch_start
                total_days = 0
                total_failed = 0

                while cursor is not None:
                    with Progress(
                        SpinnerColumn(),
                        TextColumn("[progress.description]{task.description}"),
                        console=console,
                    ) as progress:
                        progress.add_task(f"Seeding batch from {cursor}...", total=None)
                        try:
                            result = await seeder.seed_batch(
                                batch_start=cursor,
                                batch_size=batch_size,
                                clear_first=clear_first,
                                incremental=incremental,
                            )
                        except SeedError as e:
                            raise click.ClickException(str(e)) from e

                    summary = result.summary
                    total_days += summary.total_days
                    total_failed += summary.failed
                    console.print(
                        f"[green]✓[/green] Batch {summary.batch_start}-{summary.batch_end}"
                        f" of {summary.total_stocks}: {summary.processed} processed,"
                        f" {summary.total_days} days"
                        + (f" ({summary.failed} failed)" if summary.failed else "")
                    )
                    if ctx.obj["verbose"]:
                        for err in result.errors:
                            console.print(f"[red]  {err.symbol}: {err.error}[/red]")

                    cursor = summary.next_batch
                    if once:
                        break
                    if cursor is not None and pause > 0:
                        await asyncio.sleep(pause)

                if once and cursor is not None:
                    console.print(f"Next batch: [bold]{cursor}[/bold]")
                else:
                    console.print(
                        f"Seeding finished: {total_days} days written"
                        + (f", {total_failed} symbols failed" if total_failed else "")
                    )
        finally:
            await store.close()

    _run_async(_run())


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--range",
    "-r",
    "price_range",
    type=str,
    default=None,
    help="History window: 1y, 2y, 3y or 5y. Default: from config.",
)
@click.option(
    "--fetch-missing",
    is_flag=True,
    default=False,
    help="Fetch symbols absent from the cache from Yahoo Finance first.",
)
@click.pass_context
def prices(
    ctx: click.Context,
    symbols: tuple[str, ...],
    price_range: str | None,
    fetch_missing: bool,
) -> None:
    """Print cached price history for SYMBOLS as JSON."""
    config = _load_config(ctx)
    price_range = price_range or config.reader.default_range.value

    async def _run():
        from structura.prices import HistoricalSeeder, PriceCacheReader, YahooChartClient

        store = await _create_store_async(config)
        try:
            reader = PriceCacheReader(store, row_limit=config.reader.row_limit)
            result = await reader.read(list(symbols), price_range)
            if not (fetch_missing and result.errors):
                return result

            async with YahooChartClient(config.upstream) as client:
                seeder = HistoricalSeeder(store, client, config.seeder)
                fetched = await seeder.fetch_symbols(
                    [err.symbol for err in result.errors], price_range
                )
            for err in fetched.errors:
                console.print(f"[red]{err.symbol}: {err.error}[/red]")
            return await reader.read(list(symbols), price_range)
        finally:
            await store.close()

    result = _run_async(_run())
    click.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address. Default: from config.")
@click.option("--port", "-p", type=int, default=None, help="Port number. Default: from config.")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting structura API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    # The app factory runs in uvicorn and loads config on its own
    if ctx.obj.get("config_path"):
        os.environ["STRUCTURA_CONFIG"] = os.path.abspath(ctx.obj["config_path"])

    uvicorn.run(
        "structura.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--symbols/--no-symbols",
    "show_symbols",
    default=False,
    help="List per-symbol coverage.",
)
@click.pass_context
def status(ctx: click.Context, show_symbols: bool) -> None:
    """Show cache status and per-symbol coverage."""
    config = _load_config(ctx)

    async def _run():
        store = await _create_store_async(config)
        try:
            coverage = await store.coverage()
        finally:
            await store.close()

        universe = config.seeder.universe
        cached = {row.symbol for row in coverage}
        first_dates = [row.first_date for row in coverage]
        last_dates = [row.last_date for row in coverage]

        table = Table(title="Structura Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Storage backend", config.storage.backend.value)
        table.add_row("Database path", config.storage.sqlite_path)
        table.add_section()
        table.add_row("Universe size", str(len(universe)))
        table.add_row("Cached symbols", str(len(cached)))
        table.add_row("Missing from cache", str(len([s for s in universe if s not in cached])))
        table.add_row("Total rows", str(sum(row.rows for row in coverage)))
        table.add_row(
            "Date range",
            f"{min(first_dates)} → {max(last_dates)}" if coverage else "N/A",
        )
        console.print(table)

        if show_symbols and coverage:
            detail = Table(title="Coverage")
            detail.add_column("Symbol", style="bold")
            detail.add_column("Rows", justify="right")
            detail.add_column("First")
            detail.add_column("Last")
            for row in coverage:
                detail.add_row(row.symbol, str(row.rows), str(row.first_date), str(row.last_date))
            console.print(detail)

    _run_async(_run())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
