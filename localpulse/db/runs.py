"""Run management in database."""

from datetime import datetime
from typing import Any, Dict, Optional

import pendulum
from psycopg import Connection
from psycopg.types.json import Jsonb


class RunManager:
    """Record batch passes in the runs table."""

    def create_run(
        self,
        conn: Connection,
        kind: str,
        started_at: Optional[datetime] = None,
    ) -> int:
        """
        Create a new run record.

        Returns:
            Run ID
        """
        if started_at is None:
            started_at = pendulum.now("UTC")

        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO runs (kind, started_at, status)
                VALUES (%s, %s, 'running')
                RETURNING id
                """,
                (kind, started_at),
            )
            run_id = cur.fetchone()["id"]

        conn.commit()
        return run_id

    def update_run_status(
        self,
        conn: Connection,
        run_id: int,
        status: str,
        stats_json: Optional[Dict[str, Any]] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        """Update run status and statistics."""
        if finished_at is None and status in ["success", "failed"]:
            finished_at = pendulum.now("UTC")

        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE runs
                SET
                    status = %s,
                    finished_at = %s,
                    stats_json = %s
                WHERE id = %s
                """,
                (status, finished_at, Jsonb(stats_json) if stats_json else None, run_id),
            )

        conn.commit()
