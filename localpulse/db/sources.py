"""Source management in database."""

import logging
from typing import Dict, List, Tuple

from psycopg import Connection

from ..config import RegionConfig, SourceConfig
from ..models import Source

logger = logging.getLogger(__name__)

SourceKey = Tuple[str, str, str]


class SourceManager:
    """Manage sources in database."""

    def sync_sources(
        self,
        conn: Connection,
        sources: List[SourceConfig],
    ) -> Dict[SourceKey, int]:
        """
        Sync catalog sources to the database.

        Sources are upserted on (state, county, source_name). Rows of type
        ``rss`` that are no longer in the catalog are disabled, never deleted.

        Returns:
            Mapping of (state, county, source_name) to database ID
        """
        source_map: Dict[SourceKey, int] = {}

        with conn.cursor() as cur:
            for source in sources:
                cur.execute(
                    """
                    INSERT INTO sources (
                        state, county, source_name, source_type, tier,
                        website_url, rss_url, facebook_url, x_url, enabled
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (state, county, source_name) DO UPDATE SET
                        source_type = EXCLUDED.source_type,
                        tier = EXCLUDED.tier,
                        website_url = EXCLUDED.website_url,
                        rss_url = EXCLUDED.rss_url,
                        facebook_url = EXCLUDED.facebook_url,
                        x_url = EXCLUDED.x_url,
                        enabled = EXCLUDED.enabled
                    RETURNING id
                    """,
                    (
                        source.state,
                        source.county,
                        source.source_name,
                        source.source_type,
                        source.tier,
                        source.website_url,
                        source.rss_url,
                        source.facebook_url,
                        source.x_url,
                        bool(source.enabled),
                    ),
                )
                source_map[source.key] = cur.fetchone()["id"]

            if source_map:
                cur.execute(
                    """
                    UPDATE sources
                    SET enabled = FALSE
                    WHERE source_type = 'rss'
                      AND enabled = TRUE
                      AND NOT (id = ANY(%s))
                    """,
                    (list(source_map.values()),),
                )
                if cur.rowcount:
                    logger.info("Disabled %d sources no longer in the catalog", cur.rowcount)

        conn.commit()
        return source_map

    def ensure_search_source(
        self,
        conn: Connection,
        region: RegionConfig,
        source_name: str,
    ) -> Source:
        """Source row that owns search results for a region."""
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO sources (state, county, source_name, source_type, tier, enabled)
                VALUES (%s, %s, %s, 'search', 'search', TRUE)
                ON CONFLICT (state, county, source_name) DO UPDATE SET
                    enabled = TRUE
                RETURNING *
                """,
                (region.state, region.county, source_name),
            )
            row = cur.fetchone()
        conn.commit()
        return Source(**row)
