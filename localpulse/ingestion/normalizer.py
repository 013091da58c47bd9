"""Feed normalization for RSS and Atom documents."""

import calendar
import html
import logging
import re
from datetime import datetime
from typing import Any, List, Optional

import feedparser
import pendulum

from .models import CanonicalItemDraft

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 500

_HTML_LINK_TYPES = ("text/html", "application/xhtml+xml")
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def clean_snippet(text: Optional[str], limit: int = MAX_SUMMARY_CHARS) -> str:
    """Strip markup, collapse whitespace and cut to ``limit`` characters."""
    if not text:
        return ""
    text = html.unescape(_TAG_RE.sub(" ", text))
    text = _WS_RE.sub(" ", text).strip()
    if len(text) > limit:
        text = text[: limit - 1].rstrip() + "…"
    return text


def select_link(entry: Any) -> str:
    """Pick the human-readable link of an entry.

    Atom entries may carry several typed links (self, edit, enclosure,
    replies...). Only the ``alternate`` one points at the article. RSS items
    end up with a single alternate link, so the same rule covers both.
    """
    links = entry.get("links") or []
    alternates = [
        link for link in links
        if link.get("href") and link.get("rel", "alternate") == "alternate"
    ]
    for link in alternates:
        if link.get("type", "text/html") in _HTML_LINK_TYPES:
            return link["href"].strip()
    if alternates:
        return alternates[0]["href"].strip()
    if links:
        # typed links only, none of them alternate
        return ""
    return (entry.get("link") or "").strip()


def entry_timestamp(entry: Any) -> Optional[datetime]:
    """Publication time of an entry; unknown or unparseable gives None."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if not parsed:
            continue
        try:
            return pendulum.from_timestamp(calendar.timegm(parsed), tz="UTC")
        except (TypeError, ValueError, OverflowError):
            continue
    return None


def sort_items(items: List[CanonicalItemDraft]) -> List[CanonicalItemDraft]:
    """Newest first; unknown timestamps last, keeping their document order."""
    dated = [item for item in items if item.published_at is not None]
    undated = [item for item in items if item.published_at is None]
    dated.sort(key=lambda item: item.published_at, reverse=True)
    return dated + undated


def normalize(raw_document: str) -> List[CanonicalItemDraft]:
    """Parse an RSS or Atom document into canonical drafts."""
    feed = feedparser.parse(raw_document)

    if feed.bozo and not feed.entries:
        logger.debug("Document did not parse as a feed: %s", feed.get("bozo_exception"))
        return []

    items = []
    for entry in feed.entries:
        title = clean_snippet(entry.get("title"), limit=1000)
        link = select_link(entry)

        # no addressable identity
        if not title and not link:
            continue

        summary = entry.get("summary") or entry.get("description") or ""

        items.append(
            CanonicalItemDraft(
                title=title,
                link=link,
                published_at=entry_timestamp(entry),
                summary=clean_snippet(summary),
                provider="rss",
            )
        )

    return sort_items(items)
