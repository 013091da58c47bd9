"""Init command implementation."""

from pathlib import Path
from typing import List

import typer
from rich.panel import Panel

from ..config import Config, ConfigModel, RegionConfig, SourceConfig, save_catalog, save_config
from ..config.catalog import default_queries
from ..db import Database, init_database, validate_connection
from ..errors import ConfigError
from ..log import console
from .common import fail


def create_default_sources() -> List[SourceConfig]:
    """Starter catalog for one county."""
    return [
        SourceConfig(
            state="FL",
            county="Escambia",
            source_name="Pensacola News Journal",
            tier="primary",
            website_url="https://www.pnj.com",
        ),
        SourceConfig(
            state="FL",
            county="Escambia",
            source_name="WEAR-TV",
            tier="secondary",
            website_url="https://weartv.com",
        ),
        SourceConfig(
            state="FL",
            county="Escambia",
            source_name="City of Pensacola",
            tier="official",
            website_url="https://www.cityofpensacola.com",
            rss_url="https://www.cityofpensacola.com/RSSFeed.aspx?ModID=1&CID=All-newsflash.xml",
        ),
    ]


def init_command(
    config_dir: Path = typer.Option(
        Path.home() / ".config" / "localpulse",
        "--config-dir",
        "-c",
        help="Configuration directory",
    ),
    db_host: str = typer.Option("localhost", "--db-host", help="Postgres host"),
    db_port: int = typer.Option(5432, "--db-port", help="Postgres port"),
    db_name: str = typer.Option("localpulse", "--db-name", help="Database name"),
    db_user: str = typer.Option("localpulse", "--db-user", help="Database user"),
    seed_sources: bool = typer.Option(
        True,
        "--seed-sources/--no-seed-sources",
        help="Seed a starter catalog",
    ),
    skip_db: bool = typer.Option(False, "--skip-db", help="Only write the config files"),
) -> None:
    """Initialize LocalPulse configuration and database schema."""
    console.print(Panel.fit("LocalPulse - Initialization", style="bold blue"))

    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    catalog_path = config_dir / "sources.yaml"

    config = ConfigModel(
        catalog_path="sources.yaml",
        postgres={
            "host": db_host,
            "port": db_port,
            "database": db_name,
            "user": db_user,
            "password_env": "LOCALPULSE_DB_PASSWORD",
        },
    )

    if config_path.exists():
        console.print(f"[yellow]Keeping existing config: {config_path}[/yellow]")
    else:
        save_config(config, config_path)
        console.print(f"✅ Created config: {config_path}")

    if catalog_path.exists():
        console.print(f"[yellow]Keeping existing catalog: {catalog_path}[/yellow]")
    elif seed_sources:
        sources = create_default_sources()
        regions = [RegionConfig(state="FL", county="Escambia", queries=default_queries("FL", "Escambia"))]
        save_catalog(sources, catalog_path, regions=regions)
        console.print(f"✅ Created catalog: {catalog_path} (seeded with {len(sources)} sources)")
    else:
        save_catalog([], catalog_path)
        console.print(f"✅ Created catalog: {catalog_path} (empty)")

    if skip_db:
        return

    try:
        db_config = Config(config_path).get_db_config()
    except ConfigError as e:
        fail(str(e))

    console.print("\n[bold]Testing database connection...[/bold]")
    with Database(db_config) as db:
        if not validate_connection(db):
            console.print(
                "[red]❌ Database connection failed![/red]\n"
                "Please ensure Postgres is running and credentials are correct.\n"
                "Set the password via [bold]export LOCALPULSE_DB_PASSWORD=...[/bold] "
                "or point [bold]DATABASE_URL[/bold] at the database."
            )
            raise typer.Exit(1)

        console.print("✅ Database connection successful")

        console.print("\n[bold]Initializing database schema...[/bold]")
        try:
            init_database(db)
        except Exception as e:
            console.print(f"[red]❌ Failed to initialize database: {e}[/red]")
            raise typer.Exit(1)
        console.print("✅ Database schema initialized")

    console.print(
        Panel(
            f"[green]✅ LocalPulse initialized![/green]\n\n"
            f"Configuration: {config_path}\n"
            f"Catalog: {catalog_path}\n\n"
            f"Next steps:\n"
            f"1. Set the generation key: [bold]export AI_API_KEY=...[/bold] and [bold]AI_ENDPOINT[/bold]\n"
            f"2. Check feeds: [bold]localpulse sources test[/bold]\n"
            f"3. Run: [bold]localpulse run[/bold]",
            style="green",
        )
    )
