from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import pendulum
import pytest

from localpulse.config import IngestConfig, SourceConfig, SynthesisConfig
from localpulse.db.writer import ColumnInfo, TableSchema
from localpulse.models import FeedItem

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Pensacola Daily</title>
    <link>https://news.example.com</link>
    <item>
      <title>County opens new library branch</title>
      <link>https://news.example.com/library</link>
      <pubDate>Mon, 06 Jan 2025 09:00:00 GMT</pubDate>
      <description>&lt;p&gt;The branch opens &lt;b&gt;Monday&lt;/b&gt;.&lt;/p&gt;</description>
    </item>
    <item>
      <title>Road closure on Main Street</title>
      <link>https://news.example.com/road</link>
    </item>
    <item>
      <title>School board approves budget</title>
      <link>https://news.example.com/budget</link>
      <pubDate>Mon, 06 Jan 2025 12:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Weekend farmers market returns</title>
      <link>https://news.example.com/market</link>
    </item>
    <item>
      <title>Storm prep tips from county officials</title>
      <link>https://news.example.com/storm</link>
      <pubDate>Sun, 05 Jan 2025 18:30:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>County Updates</title>
  <id>urn:example:county</id>
  <updated>2025-01-06T10:00:00Z</updated>
  <entry>
    <title>Commission meeting recap</title>
    <id>urn:example:1</id>
    <link rel="self" type="application/atom+xml" href="https://county.example.gov/api/entries/1"/>
    <link rel="alternate" type="text/html" href="https://county.example.gov/news/commission-recap"/>
    <link rel="replies" type="text/html" href="https://county.example.gov/news/commission-recap#comments"/>
    <updated>2025-01-06T10:00:00Z</updated>
    <summary>Commissioners voted on three items.</summary>
  </entry>
</feed>
"""

NOT_A_FEED = "<html><head><title>Home</title></head><body><p>Welcome</p></body></html>"


@pytest.fixture
def ingest_config() -> IngestConfig:
    return IngestConfig(request_delay=0, request_timeout=5)


@pytest.fixture
def synthesis_config() -> SynthesisConfig:
    return SynthesisConfig()


@pytest.fixture
def source_config() -> SourceConfig:
    return SourceConfig(
        state="FL",
        county="Escambia",
        source_name="Pensacola Daily",
        website_url="https://news.example.com",
        rss_url="https://news.example.com/broken-feed",
    )


def feed_items_schema(**overrides) -> TableSchema:
    """Shape of the feed_items table created by ``localpulse init``."""
    columns = {
        "id": ColumnInfo(name="id", nullable=False, has_default=True),
        "source_id": ColumnInfo(name="source_id", nullable=False),
        "title": ColumnInfo(name="title", nullable=False),
        "link": ColumnInfo(name="link", nullable=False),
        "published_at": ColumnInfo(name="published_at", nullable=True),
        "summary": ColumnInfo(name="summary", nullable=False, has_default=True),
        "content_hash": ColumnInfo(name="content_hash", nullable=False),
        "created_at": ColumnInfo(name="created_at", nullable=False, has_default=True),
    }
    data = {
        "table": "feed_items",
        "columns": columns,
        "unique_keys": [("id",), ("source_id", "content_hash")],
    }
    data.update(overrides)
    return TableSchema(**data)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self._result: List[Dict[str, Any]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, query: Any, params: Any = None) -> None:
        text = query.as_string() if hasattr(query, "as_string") else query
        self.conn.executed.append((text, params))
        if self.conn.error is not None:
            raise self.conn.error
        self._result = list(self.conn.responder(text, params) or [])

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._result)


class FakeConnection:
    """Records statements; ``responder(sql, params)`` supplies result rows."""

    def __init__(
        self,
        responder: Optional[Callable[[str, Any], List[Dict[str, Any]]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.responder = responder or (lambda sql, params: [{"inserted": True}])
        self.error = error
        self.executed: List[Tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    @contextmanager
    def transaction(self):
        yield

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


def dedup_responder():
    """Emulate ON CONFLICT DO NOTHING keyed on the full parameter tuple."""
    seen = set()

    def respond(sql: str, params: Any) -> List[Dict[str, Any]]:
        key = tuple(params)
        if key in seen:
            return []
        seen.add(key)
        return [{"inserted": True}]

    return respond


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


def make_item(
    item_id: int,
    state: str = "FL",
    county: str = "Escambia",
    published_at: Optional[pendulum.DateTime] = None,
    title: Optional[str] = None,
) -> FeedItem:
    return FeedItem(
        id=item_id,
        source_id=1,
        title=title or f"Item {item_id}",
        link=f"https://news.example.com/{item_id}",
        published_at=published_at,
        summary=f"Summary of item {item_id}",
        content_hash=f"hash-{item_id}",
        source_name="Pensacola Daily",
        state=state,
        county=county,
    )


class FakeItemRepository:
    """In-memory ItemRepository."""

    def __init__(self, items: List[FeedItem]) -> None:
        self.items = items

    def list_regions(self, conn, window=None):
        regions = sorted({(i.state, i.county) for i in self.items if window is None or window.contains(i.published_at)})
        return regions

    def load_window_items(self, conn, state, county, window, limit=40):
        matching = [
            i for i in self.items
            if i.state == state and i.county == county and window.contains(i.published_at)
        ]
        dated = sorted(
            [i for i in matching if i.published_at is not None],
            key=lambda i: (i.published_at, i.id),
            reverse=True,
        )
        undated = sorted([i for i in matching if i.published_at is None], key=lambda i: i.id, reverse=True)
        return (dated + undated)[:limit]


class FakeStoryRepository:
    """In-memory StoryRepository enforcing window uniqueness."""

    def __init__(self, always_report_missing: bool = False) -> None:
        self.stories: Dict[tuple, Any] = {}
        self.citations: Dict[int, List[Any]] = {}
        self.always_report_missing = always_report_missing

    @staticmethod
    def _key(state, county, story_type, start, end):
        return (state, county, story_type, start, end)

    def story_exists(self, conn, state, county, story_type, window):
        if self.always_report_missing:
            return False
        return self._key(state, county, story_type, window.start, window.end) in self.stories

    def insert_story_with_citations(self, conn, story, citations):
        key = self._key(
            story.state, story.county, story.story_type, story.time_window_start, story.time_window_end
        )
        if key in self.stories:
            return None
        story_id = len(self.stories) + 1
        self.stories[key] = story
        self.citations[story_id] = list(citations)
        return story_id
