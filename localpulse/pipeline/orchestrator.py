"""Pipeline orchestrator that runs feed ingestion, search ingestion and synthesis."""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

import pendulum
from psycopg import Connection
from pydantic import BaseModel, Field
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..config import Config, SourceCatalog, load_catalog, load_mapping
from ..db import AdaptiveWriter, Database, RunManager, SourceManager
from ..errors import LocalPulseError
from ..generation import GenerationProvider, SynthesisEngine, build_provider
from ..ingestion import FeedResolver, SearchAdapter
from ..log import console
from ..models import Source
from ..timeutil import TimeWindow, aligned_window, lookback_window

logger = logging.getLogger(__name__)

STAGE_NAMES = ("feeds", "search", "synthesize")


class StageStats(BaseModel):
    """Per-stage unit counts plus item write outcomes."""

    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    writes: Dict[str, int] = Field(default_factory=dict, description="Write outcome counts")

    def add_writes(self, counts: Dict[str, int]) -> None:
        for outcome, count in counts.items():
            self.writes[outcome] = self.writes.get(outcome, 0) + count


class PipelineStage:
    """Represents a pipeline stage."""

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.success = False
        self.error: Optional[str] = None
        self.stats = StageStats()

    def start(self):
        """Mark stage as started."""
        self.start_time = time.time()

    def complete(self, stats: StageStats):
        """Mark stage as completed; unit failures inside it do not fail the stage."""
        self.end_time = time.time()
        self.success = True
        self.stats = stats

    def fail(self, error: str):
        """Mark stage as failed."""
        self.end_time = time.time()
        self.success = False
        self.error = error

    @property
    def duration(self) -> float:
        """Get stage duration in seconds."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return 0.0


DESCRIPTIONS = {
    "feeds": "Resolving and ingesting feeds",
    "search": "Searching for regional coverage",
    "synthesize": "Writing county roundups",
}


class PipelineOrchestrator:
    """Run ingestion and synthesis stages against one database."""

    def __init__(
        self,
        config: Config,
        db: Database,
        provider: Optional[GenerationProvider] = None,
        resolver: Optional[FeedResolver] = None,
        search_adapter: Optional[Callable[[], SearchAdapter]] = None,
    ):
        self.config = config
        self.db = db
        self._provider = provider
        self.resolver = resolver or FeedResolver(config.config.ingest)
        self.search_adapter = search_adapter or (lambda: SearchAdapter(config.config.ingest))
        self.stages: List[PipelineStage] = []
        self._catalog: Optional[SourceCatalog] = None
        self._writer: Optional[AdaptiveWriter] = None

    @property
    def catalog(self) -> SourceCatalog:
        if self._catalog is None:
            self._catalog = load_catalog(self.config.catalog_path)
        return self._catalog

    @property
    def provider(self) -> GenerationProvider:
        if self._provider is None:
            self._provider = build_provider(self.config.get_llm_config())
        return self._provider

    def writer(self, conn: Connection) -> AdaptiveWriter:
        """Writer prepared once per orchestrator; schema and mapping errors are fatal."""
        if self._writer is None:
            mapping = load_mapping(self.config.mapping_path, self.config.config.target_table)
            writer = AdaptiveWriter(mapping)
            writer.prepare(conn)
            self._writer = writer
        return self._writer

    def ingest_feeds(self, conn: Connection) -> StageStats:
        """Sync the catalog, resolve every enabled source and write its items."""
        catalog = self.catalog
        writer = self.writer(conn)

        source_ids = SourceManager().sync_sources(conn, catalog.all_sources())
        sources = catalog.list_enabled_sources()
        results = self.resolver.resolve_sync(sources)

        stats = StageStats(attempted=len(sources))
        for source_config, result in zip(sources, results):
            if not result.success:
                stats.skipped += 1
                continue

            source = Source(id=source_ids[source_config.key], **source_config.model_dump())
            counts = writer.write_many(conn, result.items, source)
            stats.add_writes(counts)
            if counts.get("failed"):
                stats.failed += 1
            else:
                stats.succeeded += 1

            logger.info(
                "[%s] %s: new=%d dup=%d rejected=%d failed=%d",
                source.region, source.source_name,
                counts["inserted"], counts["duplicate"], counts["rejected"], counts["failed"],
            )
        return stats

    def ingest_search(self, conn: Connection, window: Optional[TimeWindow] = None) -> StageStats:
        """Query the search index for every enabled region and write the results."""
        ingest = self.config.config.ingest
        window = window or lookback_window(ingest.lookback_hours)
        writer = self.writer(conn)
        source_manager = SourceManager()

        logger.info("Search window %s", window)
        stats = StageStats()
        with self.search_adapter() as adapter:
            for region in self.catalog.list_regions():
                source = source_manager.ensure_search_source(conn, region, ingest.search_source_name)
                for result in adapter.search_region(region, window):
                    stats.attempted += 1
                    if result.skipped:
                        stats.skipped += 1
                        continue
                    if not result.success:
                        stats.failed += 1
                        continue

                    counts = writer.write_many(conn, result.items, source)
                    stats.add_writes(counts)
                    stats.succeeded += 1
                    logger.info(
                        "[%s] %s -> new=%d dup=%d rejected=%d failed=%d",
                        region.tag, result.query,
                        counts["inserted"], counts["duplicate"], counts["rejected"], counts["failed"],
                    )
        return stats

    def synthesize(
        self,
        conn: Connection,
        window_end: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> StageStats:
        """Write at most one roundup per region for the aligned window."""
        synthesis = self.config.config.synthesis
        if window_end is not None:
            end = pendulum.instance(window_end).in_timezone("UTC")
            window = TimeWindow(start=end.subtract(hours=synthesis.window_hours), end=end)
        else:
            window = aligned_window(synthesis.window_hours)

        # dry runs stop before generation and need no provider credentials
        provider = self._provider if dry_run else self.provider
        engine = SynthesisEngine(provider, synthesis)
        result = engine.run(conn, window, dry_run=dry_run)
        return StageStats(
            attempted=len(result.outcomes),
            succeeded=result.created,
            skipped=result.skipped,
            failed=result.failed,
        )

    def _execute_stage(self, conn: Connection, stage: PipelineStage, **kwargs) -> bool:
        stage.start()
        try:
            if stage.name == "feeds":
                stats = self.ingest_feeds(conn)
            elif stage.name == "search":
                stats = self.ingest_search(conn)
            else:
                stats = self.synthesize(conn, **kwargs)
        except LocalPulseError as e:
            logger.error("%s stage aborted: %s", stage.name, e)
            stage.fail(str(e))
            return False
        except Exception as e:
            stage.fail(str(e))
            raise
        stage.complete(stats)
        return True

    def run(
        self,
        stages: List[str],
        window_end: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> bool:
        """
        Run the named stages in order.

        Returns:
            True if no stage hit a fatal error
        """
        self.stages = [PipelineStage(name, DESCRIPTIONS[name]) for name in stages]
        total_start = time.time()
        success = True

        with self.db.connection() as conn:
            run_manager = RunManager()
            run_id = run_manager.create_run(conn, "+".join(stages))

            try:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    TimeElapsedColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    for stage in self.stages:
                        task = progress.add_task(stage.description, total=1)
                        kwargs = (
                            {"window_end": window_end, "dry_run": dry_run} if stage.name == "synthesize" else {}
                        )
                        if not self._execute_stage(conn, stage, **kwargs):
                            success = False
                            break
                        progress.advance(task, 1)
                        progress.remove_task(task)
            except Exception:
                success = False
                raise
            finally:
                conn.rollback()
                run_manager.update_run_status(
                    conn,
                    run_id,
                    "success" if success else "failed",
                    self.summary(time.time() - total_start),
                )
                self.print_summary()

        return success

    def summary(self, duration: float) -> Dict:
        return {
            "total_duration": round(duration, 2),
            "stages": {
                stage.name: {
                    "success": stage.success,
                    "error": stage.error,
                    "duration": round(stage.duration, 2),
                    **stage.stats.model_dump(),
                }
                for stage in self.stages
            },
        }

    def print_summary(self) -> None:
        """Print pipeline execution summary."""
        table = Table(title="Run Summary")
        table.add_column("Stage", style="cyan")
        table.add_column("Status", style="bold")
        table.add_column("Attempted", justify="right")
        table.add_column("Succeeded", justify="right", style="green")
        table.add_column("Skipped", justify="right", style="yellow")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Items", style="dim")
        table.add_column("Duration", style="yellow")

        for stage in self.stages:
            status = "[green]ok[/green]" if stage.success else "[red]aborted[/red]"
            writes = stage.stats.writes
            items = (
                f"{writes.get('inserted', 0)} new, {writes.get('duplicate', 0)} dup, "
                f"{writes.get('rejected', 0)} rejected, {writes.get('failed', 0)} failed"
                if writes
                else (stage.error or "-")
            )
            table.add_row(
                stage.name,
                status,
                str(stage.stats.attempted),
                str(stage.stats.succeeded),
                str(stage.stats.skipped),
                str(stage.stats.failed),
                items,
                f"{stage.duration:.1f}s" if stage.duration > 0 else "-",
            )

        console.print(table)

        failed = [s.name for s in self.stages if not s.success]
        if failed:
            console.print(Panel(f"[red]Aborted in: {', '.join(failed)}[/red]\nCheck logs for details.", style="red"))
