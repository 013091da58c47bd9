"""Main CLI application."""

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

from ..log import setup_logging
from .common import State
from .ingest import ingest_feeds_command, ingest_search_command, run_command, synthesize_command
from .init import init_command
from .sources import sources_app

app = typer.Typer(
    name="localpulse",
    help="LocalPulse - local news ingestion and county roundups",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: ~/.config/localpulse/config.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Global options."""
    setup_logging(verbose)
    ctx.obj = State(config_path=config_path)


# Register commands
app.command("init")(init_command)
app.command("ingest-feeds")(ingest_feeds_command)
app.command("ingest-search")(ingest_search_command)
app.command("synthesize")(synthesize_command)
app.command("run")(run_command)
app.add_typer(sources_app, name="sources", help="Inspect catalog sources")


if __name__ == "__main__":
    app()
