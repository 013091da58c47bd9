"""Story storage."""

import logging
from typing import List, Optional

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..models import Story, StoryCitation
from ..timeutil import TimeWindow

logger = logging.getLogger(__name__)


class StoryRepository:
    """Persist stories together with their citations."""

    def story_exists(
        self,
        conn: Connection,
        state: str,
        county: str,
        story_type: str,
        window: TimeWindow,
    ) -> bool:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT 1 FROM stories
                WHERE state = %s AND county = %s AND story_type = %s
                  AND time_window_start = %s AND time_window_end = %s
                LIMIT 1
                """,
                (state, county, story_type, window.start, window.end),
            )
            return cur.fetchone() is not None

    def insert_story_with_citations(
        self,
        conn: Connection,
        story: Story,
        citations: List[StoryCitation],
    ) -> Optional[int]:
        """
        Insert a story and its citations atomically.

        Returns:
            Story ID, or None when a story already exists for the same
            region, type and window
        """
        with conn.transaction():
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO stories (
                        state, county, region, story_type, title, dek,
                        body_markdown, bullets_json, time_window_start,
                        time_window_end, model_name, prompt_version, status
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (state, county, story_type, time_window_start, time_window_end)
                    DO NOTHING
                    RETURNING id
                    """,
                    (
                        story.state,
                        story.county,
                        story.region,
                        story.story_type,
                        story.title,
                        story.dek,
                        story.body_markdown,
                        Jsonb(story.bullets),
                        story.time_window_start,
                        story.time_window_end,
                        story.model_name,
                        story.prompt_version,
                        story.status,
                    ),
                )
                row = cur.fetchone()
                if row is None:
                    return None

                story_id = row["id"]
                for position, citation in enumerate(citations):
                    cur.execute(
                        """
                        INSERT INTO story_sources (
                            story_id, feed_item_id, source_link, source_title,
                            source_published_at, position
                        )
                        VALUES (%s, %s, %s, %s, %s, %s)
                        ON CONFLICT (story_id, feed_item_id) DO NOTHING
                        """,
                        (
                            story_id,
                            citation.feed_item_id,
                            citation.source_link,
                            citation.source_title,
                            citation.source_published_at,
                            position,
                        ),
                    )

        # the block above is only a savepoint when reads left a transaction open
        conn.commit()
        logger.debug("Stored story %s with %d citations", story_id, len(citations))
        return story_id

    def get_citations(self, conn: Connection, story_id: int) -> List[StoryCitation]:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT * FROM story_sources
                WHERE story_id = %s
                ORDER BY position
                """,
                (story_id,),
            )
            return [StoryCitation(**row) for row in cur.fetchall()]
