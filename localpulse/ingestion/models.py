"""Data models for ingestion."""

import hashlib
import json
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field


def content_signature(title: str, link: str) -> str:
    """Stable hash of (title, link); the JSON array keeps the two fields apart."""
    payload = json.dumps([(title or "").strip(), (link or "").strip()], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CanonicalItemDraft(BaseModel):
    """Normalized feed entry or search result, before persistence."""

    title: str = Field("", description="Item title")
    link: str = Field("", description="Human-readable link")
    published_at: Optional[datetime] = Field(None, description="Publication time, None when unknown")
    summary: str = Field("", description="Short snippet")
    image: Optional[str] = Field(None, description="Image URL if provided")
    provider: str = Field("rss", description="Where the item came from (rss, gdelt)")
    query: Optional[str] = Field(None, description="Search query that produced the item")

    @property
    def signature(self) -> str:
        """Content signature used as the dedup key."""
        return content_signature(self.title, self.link)

    @property
    def domain(self) -> Optional[str]:
        """Host of the link."""
        if not self.link:
            return None
        return urlparse(self.link).hostname


class ResolvedFeed(BaseModel):
    """Feed endpoint that parsed into at least one item."""

    url: str = Field(..., description="Candidate URL that succeeded")
    raw_document: str = Field(..., description="Fetched document body")
    items: List[CanonicalItemDraft] = Field(default_factory=list)


class FeedResult(BaseModel):
    """Result of resolving one source."""

    source_name: str = Field(..., description="Source name")
    region: str = Field(..., description="Region label")
    success: bool = Field(..., description="Whether a feed was found")
    feed_url: Optional[str] = Field(None, description="Resolved feed URL")
    items: List[CanonicalItemDraft] = Field(default_factory=list, description="Parsed feed items")
    candidates_tried: int = Field(0, description="Number of candidates probed")
    error: Optional[str] = Field(None, description="Reason when no feed was found")

    @property
    def item_count(self) -> int:
        return len(self.items)


class SearchResult(BaseModel):
    """Result of one search query."""

    region: str = Field(..., description="Region label")
    query: str = Field(..., description="Query string")
    success: bool = Field(..., description="Whether the query returned results")
    skipped: bool = Field(False, description="Query rejected before sending")
    items: List[CanonicalItemDraft] = Field(default_factory=list)
    error: Optional[str] = Field(None, description="Reason for failure or skip")
