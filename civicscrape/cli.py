"""Command-line interface for civicscrape."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from civicscrape import ScrapeConfig, ScrapeContext, __version__
from civicscrape.config import LogFormat
from civicscrape.exceptions import CivicScrapeError
from civicscrape.models import Ordering, OrderingType, PagedResponse, PostScrapeHistory
from civicscrape.repository import Refresh

app = typer.Typer(
    name="civicscrape",
    help="Facebook page post scraper",
    add_completion=False,
)
pages_app = typer.Typer(help="Manage the pages that get scraped")
app.add_typer(pages_app, name="pages")
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"civicscrape version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """civicscrape - Facebook page post scraper."""
    pass


def _run(coro) -> None:
    """Run a coroutine, turning domain errors into a clean exit."""
    try:
        asyncio.run(coro)
    except CivicScrapeError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _config(quiet: bool = False) -> ScrapeConfig:
    config = ScrapeConfig()
    if quiet:
        config.log_format = LogFormat.JSON
        config.log_level = "WARNING"
    return config


@app.command()
def scrape(
    since: datetime = typer.Option(..., "--since", "-s", help="Window start (inclusive)"),
    until: datetime = typer.Option(..., "--until", "-u", help="Window end (exclusive)"),
    pages: Optional[list[str]] = typer.Option(
        None, "--page", "-p", help="Page id to scrape, repeatable. Default: every known page"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings"),
):
    """Scrape posts and comments published in a time window."""

    async def run():
        async with ScrapeContext(_config(quiet)) as ctx:
            history = await ctx.orchestrator.run_scrape(pages, since, until)
            _print_history(history)

    _run(run())


@app.command()
def history(
    history_id: Optional[str] = typer.Argument(None, help="Show a single run"),
    page: int = typer.Option(1, "--page", help="Page number"),
    size: int = typer.Option(20, "--size", help="Runs per page"),
):
    """List recent scrape runs."""

    async def run():
        async with ScrapeContext(_config(quiet=True)) as ctx:
            if history_id:
                _print_history(await ctx.history_repository.get(history_id))
                return

            response = await ctx.history_repository.query(
                PagedResponse(page_number=page, page_size=size),
                Ordering(field="import_start"),
                "import_start",
            )
            table = Table(title=f"Scrape runs ({response.total} total)")
            table.add_column("Id", style="dim")
            table.add_column("Window")
            table.add_column("Started")
            table.add_column("Posts", justify="right")
            table.add_column("Comments", justify="right")
            for run_history in response.data:
                table.add_row(
                    run_history.id,
                    f"{run_history.since:%Y-%m-%d} → {run_history.until:%Y-%m-%d}",
                    f"{run_history.import_start:%Y-%m-%d %H:%M}",
                    f"{run_history.number_of_posts:,}",
                    f"{run_history.number_of_comments:,}",
                )
            console.print(table)

    _run(run())


@app.command()
def export(
    output: Path = typer.Option(Path("export.csv"), "--output", "-o", help="Output CSV path"),
    since: Optional[datetime] = typer.Option(None, "--since", "-s"),
    until: Optional[datetime] = typer.Option(None, "--until", "-u"),
    ascending: bool = typer.Option(False, "--ascending", help="Oldest posts first"),
):
    """Export posts created in a window to CSV."""
    order = OrderingType.ASCENDING if ascending else OrderingType.DESCENDING

    async def run():
        async with ScrapeContext(_config(quiet=True)) as ctx:
            payload = await ctx.post_scraper.export(Ordering(field="created_time", order=order), since, until)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(payload)
        console.print(f"[dim]Saved to {output}[/dim]")

    _run(run())


@app.command("import-csv")
def import_csv(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV produced by export"),
):
    """Import posts from a CSV export."""

    async def run():
        async with ScrapeContext(_config(quiet=True)) as ctx:
            count = 0
            async for _ in ctx.post_scraper.import_csv(path, ctx.config.import_chunk_size):
                count += 1
            console.print(f"[green]✓[/green] Imported {count:,} posts")

    _run(run())


@app.command("import-historical")
def import_historical(
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Directory holding legacy exports (default from config)"
    ),
):
    """Backfill posts from legacy engagement exports."""
    config = _config(quiet=True)
    if directory is not None:
        config.historical_import_dir = str(directory)

    async def run():
        async with ScrapeContext(config) as ctx:
            files = ctx.legacy_exports()
            console.print(f"Found {len(files)} export files")
            importer = ctx.historical_importer()
            count = 0
            async for _ in importer.import_posts(files):
                count += 1
            console.print(f"[green]✓[/green] Imported {count:,} posts")
            for failure in importer.failures:
                console.print(f"[red]✗[/red] {failure.path}: {escape(failure.error)}")

    _run(run())


@pages_app.command("add")
def add_pages(
    page_ids: list[str] = typer.Argument(..., help="Page ids or usernames to register"),
):
    """Scrape page metadata and register the pages for scraping."""

    async def run():
        async with ScrapeContext(_config(quiet=True)) as ctx:
            for page_id in page_ids:
                page = await ctx.page_scraper.scrape(page_id)
                await ctx.page_repository.save(page, refresh=Refresh.TRUE)
                console.print(f"[green]✓[/green] {page.id} {page.name or ''}")

    _run(run())


@pages_app.command("list")
def list_pages():
    """Show every registered page."""

    async def run():
        async with ScrapeContext(_config(quiet=True)) as ctx:
            table = Table(title="Pages")
            table.add_column("Id", style="dim")
            table.add_column("Name")
            table.add_column("Fans", justify="right")
            async for page in ctx.page_repository.all_data():
                table.add_row(page.id, page.name or "-", f"{page.fan_count:,}" if page.fan_count else "-")
            console.print(table)

    _run(run())


def _print_history(history: PostScrapeHistory):
    """Print a scrape run summary."""
    console.print(f"\n[bold]Scrape {history.id}[/bold]")
    console.print(f"  Window: {history.since:%Y-%m-%d %H:%M} → {history.until:%Y-%m-%d %H:%M}")
    console.print(f"  Pages: {', '.join(p.name or p.id for p in history.pages) or '-'}")
    console.print(
        f"  [blue]{history.number_of_posts:,}[/blue] posts · "
        f"[blue]{history.number_of_comments:,}[/blue] comments"
    )
    if history.failed_comment_posts:
        console.print(
            f"  [yellow]Comments missing for {len(history.failed_comment_posts)} posts[/yellow]"
        )


if __name__ == "__main__":
    app()
