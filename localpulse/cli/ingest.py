"""Ingestion, synthesis and full-run commands."""

from datetime import datetime
from typing import List, Optional

import psycopg
import typer

from ..db import Database, validate_connection
from ..errors import LocalPulseError
from ..log import console
from ..pipeline import STAGE_NAMES, PipelineOrchestrator
from ..timeutil import parse_iso
from .common import fail, get_state


def run_stages(
    ctx: typer.Context,
    stages: List[str],
    window_end: Optional[datetime] = None,
    dry_run: bool = False,
) -> None:
    """Run stages and exit 1 on a fatal error; unit failures only show in the summary."""
    try:
        config = get_state(ctx).config()
        with Database(config.get_db_config()) as db:
            console.print("[dim]Checking database connection...[/dim]")
            if not validate_connection(db):
                fail("Database connection failed! Check postgres settings or DATABASE_URL.")

            orchestrator = PipelineOrchestrator(config, db)
            success = orchestrator.run(stages, window_end=window_end, dry_run=dry_run)
    except LocalPulseError as e:
        fail(str(e))
    except psycopg.Error as e:
        fail(f"Database error: {e}")
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(1)

    if not success:
        raise typer.Exit(1)


def parse_window_end(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_iso(value)
    except ValueError as e:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value}") from e


def ingest_feeds_command(ctx: typer.Context) -> None:
    """Resolve every enabled source's feed and store new items."""
    run_stages(ctx, ["feeds"])


def ingest_search_command(ctx: typer.Context) -> None:
    """Search every enabled region over the lookback window and store new items."""
    run_stages(ctx, ["search"])


def synthesize_command(
    ctx: typer.Context,
    window_end: Optional[str] = typer.Option(
        None,
        "--window-end",
        help="Window end (ISO-8601). Default: current aligned window",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report groups without generating or storing"),
) -> None:
    """Write one county roundup per region for the story window."""
    run_stages(ctx, ["synthesize"], window_end=parse_window_end(window_end), dry_run=dry_run)


def run_command(
    ctx: typer.Context,
    skip_search: bool = typer.Option(False, "--skip-search", help="Do not run the search stage"),
) -> None:
    """Run feed ingestion, search ingestion and synthesis in order."""
    stages = [name for name in STAGE_NAMES if not (skip_search and name == "search")]
    run_stages(ctx, stages)
