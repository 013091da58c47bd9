"""Stored feed item model."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import DBModel


class FeedItem(DBModel):
    """Canonical item as stored in feed_items, joined with its source."""

    source_id: int = Field(..., description="Foreign key to sources table")
    title: str = Field(..., description="Item title")
    link: str = Field(..., description="Canonical link")
    published_at: Optional[datetime] = Field(None, description="Publication time, None when unknown")
    summary: str = Field("", description="Short snippet")
    content_hash: str = Field(..., description="Content signature")
    source_name: Optional[str] = Field(None, description="Owning source display name")
    state: Optional[str] = Field(None, description="Owning source state")
    county: Optional[str] = Field(None, description="Owning source county")
