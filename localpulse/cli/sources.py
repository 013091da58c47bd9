"""Source catalog commands."""

from typing import Optional

import typer
from rich.table import Table

from ..config import load_catalog
from ..errors import LocalPulseError
from ..ingestion import FeedResolver, candidate_urls
from ..log import console
from .common import fail, get_state

sources_app = typer.Typer(help="Inspect catalog sources")


@sources_app.command("list")
def sources_list(ctx: typer.Context) -> None:
    """List all catalog sources."""
    try:
        config = get_state(ctx).config()
        catalog = load_catalog(config.catalog_path)
    except LocalPulseError as e:
        fail(f"{e}. Run 'localpulse init' first.")

    sources = catalog.all_sources()
    if not sources:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title="Configured Sources")
    table.add_column("Region", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Tier", style="magenta")
    table.add_column("Enabled", style="yellow")
    table.add_column("Feed / Website", style="blue")

    for source in sources:
        table.add_row(
            source.label,
            source.source_name,
            source.tier,
            "✓" if source.enabled else "✗",
            source.rss_url or source.website_url or "-",
        )

    console.print(table)

    regions = catalog.list_regions()
    if regions:
        console.print(f"\n[bold]{len(regions)} search regions:[/bold]")
        for region in regions:
            console.print(f"  {region.tag}: " + " | ".join(region.queries))


@sources_app.command("test")
def sources_test(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Source name to test (or test all)"),
) -> None:
    """Resolve feeds without writing anything."""
    try:
        config = get_state(ctx).config()
        catalog = load_catalog(config.catalog_path)
    except LocalPulseError as e:
        fail(str(e))

    if name:
        sources = catalog.find(name)
        if not sources:
            fail(f"Source '{name}' not found.")
    else:
        sources = catalog.list_enabled_sources()

    for source in sources:
        if not source.enabled:
            console.print(f"[yellow]⚠️  {source.label}: Disabled[/yellow]")
    sources = [s for s in sources if s.enabled]

    resolver = FeedResolver(config.config.ingest)
    for source, result in zip(sources, resolver.resolve_sync(sources)):
        if result.success:
            console.print(
                f"[green]✅ {source.label}: {result.item_count} items from {result.feed_url}[/green]"
            )
        else:
            tried = len(candidate_urls(source))
            console.print(f"[red]❌ {source.label}: {result.error} ({tried} candidates)[/red]")
