"""Read access to stored feed items."""

from typing import List, Optional, Tuple

from psycopg import Connection

from ..models import FeedItem
from ..timeutil import TimeWindow


class ItemRepository:
    """Query feed items for synthesis."""

    def list_regions(self, conn: Connection, window: Optional[TimeWindow] = None) -> List[Tuple[str, str]]:
        """(state, county) pairs that have items from enabled sources, optionally within ``window``."""
        query = """
            SELECT DISTINCT s.state, s.county
            FROM feed_items fi
            JOIN sources s ON s.id = fi.source_id
            WHERE s.enabled = TRUE
        """
        params: list = []
        if window is not None:
            query += " AND (fi.published_at IS NULL OR (fi.published_at >= %s AND fi.published_at < %s))"
            params.extend([window.start, window.end])
        query += " ORDER BY s.state, s.county"

        with conn.cursor() as cur:
            cur.execute(query, params)
            return [(row["state"], row["county"]) for row in cur.fetchall()]

    def load_window_items(
        self,
        conn: Connection,
        state: str,
        county: str,
        window: TimeWindow,
        limit: int = 40,
    ) -> List[FeedItem]:
        """
        Items for one region inside ``window``, newest first.

        Undated items are included and sort after dated ones.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT fi.id, fi.source_id, fi.title, fi.link, fi.published_at,
                       fi.summary, fi.content_hash, fi.created_at,
                       s.source_name, s.state, s.county
                FROM feed_items fi
                JOIN sources s ON s.id = fi.source_id
                WHERE s.state = %s
                  AND s.county = %s
                  AND s.enabled = TRUE
                  AND (fi.published_at IS NULL
                       OR (fi.published_at >= %s AND fi.published_at < %s))
                ORDER BY fi.published_at DESC NULLS LAST, fi.id DESC
                LIMIT %s
                """,
                (state, county, window.start, window.end, limit),
            )
            return [FeedItem(**row) for row in cur.fetchall()]
