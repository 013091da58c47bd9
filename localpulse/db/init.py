"""Database initialization and schema management."""

import logging

from psycopg.errors import DatabaseError

from .connection import Database

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
-- Sources table
CREATE TABLE IF NOT EXISTS sources (
    id SERIAL PRIMARY KEY,
    state TEXT NOT NULL,
    county TEXT NOT NULL,
    source_name TEXT NOT NULL,
    source_type TEXT NOT NULL DEFAULT 'rss',
    tier TEXT NOT NULL DEFAULT 'secondary',
    website_url TEXT NOT NULL DEFAULT '',
    rss_url TEXT NOT NULL DEFAULT '',
    facebook_url TEXT NOT NULL DEFAULT '',
    x_url TEXT NOT NULL DEFAULT '',
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS sources_state_county_name_unique
    ON sources(state, county, source_name);

-- Feed items table
CREATE TABLE IF NOT EXISTS feed_items (
    id BIGSERIAL PRIMARY KEY,
    source_id INTEGER NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    link TEXT NOT NULL,
    published_at TIMESTAMPTZ NULL,
    summary TEXT NOT NULL DEFAULT '',
    content_hash TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS feed_items_source_hash_unique
    ON feed_items(source_id, content_hash);
CREATE INDEX IF NOT EXISTS feed_items_published_at_idx
    ON feed_items(published_at DESC NULLS LAST);
CREATE INDEX IF NOT EXISTS feed_items_source_id_idx
    ON feed_items(source_id);

-- Stories table
CREATE TABLE IF NOT EXISTS stories (
    id BIGSERIAL PRIMARY KEY,
    state TEXT NOT NULL,
    county TEXT NOT NULL,
    region TEXT NOT NULL DEFAULT '',
    story_type TEXT NOT NULL DEFAULT 'roundup',
    title TEXT NOT NULL,
    dek TEXT NOT NULL DEFAULT '',
    body_markdown TEXT NOT NULL,
    bullets_json JSONB NOT NULL DEFAULT '[]'::jsonb,
    time_window_start TIMESTAMPTZ NOT NULL,
    time_window_end TIMESTAMPTZ NOT NULL,
    model_name TEXT NOT NULL DEFAULT '',
    prompt_version TEXT NOT NULL DEFAULT 'v1',
    status TEXT NOT NULL DEFAULT 'published' CHECK (status IN ('draft', 'published', 'failed')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS stories_region_window_unique
    ON stories(state, county, story_type, time_window_start, time_window_end);
CREATE INDEX IF NOT EXISTS stories_state_county_created_at_idx
    ON stories(state, county, created_at DESC);

-- Story citations
CREATE TABLE IF NOT EXISTS story_sources (
    id BIGSERIAL PRIMARY KEY,
    story_id BIGINT NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    -- nullable so citations outlive pruned items
    feed_item_id BIGINT NULL REFERENCES feed_items(id) ON DELETE SET NULL,
    source_link TEXT NOT NULL,
    source_title TEXT NOT NULL,
    source_published_at TIMESTAMPTZ NULL,
    position INTEGER NOT NULL DEFAULT 0,
    UNIQUE (story_id, feed_item_id)
);

CREATE INDEX IF NOT EXISTS story_sources_feed_item_id_idx
    ON story_sources(feed_item_id);

-- Runs table
CREATE TABLE IF NOT EXISTS runs (
    id SERIAL PRIMARY KEY,
    kind TEXT NOT NULL,
    started_at TIMESTAMPTZ NOT NULL,
    finished_at TIMESTAMPTZ,
    status TEXT NOT NULL DEFAULT 'running' CHECK (status IN ('running', 'success', 'failed')),
    stats_json JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS runs_started_at_idx ON runs(started_at DESC);

-- Update trigger function
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = CURRENT_TIMESTAMP;
    RETURN NEW;
END;
$$ language 'plpgsql';

DROP TRIGGER IF EXISTS update_sources_updated_at ON sources;
CREATE TRIGGER update_sources_updated_at BEFORE UPDATE ON sources
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
"""


def validate_connection(db: Database) -> bool:
    """Validate database connection."""
    try:
        with db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok")
                result = cur.fetchone()
                return result is not None and result["ok"] == 1
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


def init_database(db: Database) -> None:
    """Initialize database schema."""
    try:
        with db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
            logger.info("Database schema initialized")
    except DatabaseError as e:
        logger.error("Failed to initialize database schema: %s", e)
        raise
