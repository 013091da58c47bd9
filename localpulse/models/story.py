"""Story and citation models."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import DBModel


class Story(DBModel):
    """Synthesized roundup, unique per (state, county, story_type, window)."""

    state: str = Field(..., description="State code")
    county: str = Field(..., description="County name")
    region: str = Field("", description="Region label")
    story_type: str = Field("roundup", description="Story category")
    title: str = Field(..., description="Headline")
    dek: str = Field("", description="One-line subtitle")
    body_markdown: str = Field(..., description="Body text")
    bullets: List[str] = Field(default_factory=list, description="Ordered bullet strings")
    time_window_start: datetime = Field(..., description="Window start (inclusive)")
    time_window_end: datetime = Field(..., description="Window end (exclusive)")
    model_name: str = Field("", description="Generation model identifier")
    prompt_version: str = Field("v1", description="Prompt template version")
    status: str = Field("published", description="draft, published or failed")


class StoryCitation(DBModel):
    """Link from a story to a cited feed item, with denormalized fields."""

    story_id: Optional[int] = Field(None, description="Foreign key to stories table")
    feed_item_id: Optional[int] = Field(..., description="Foreign key to feed_items table, None once the item is pruned")
    source_link: str = Field(..., description="Cited item link")
    source_title: str = Field(..., description="Cited item title")
    source_published_at: Optional[datetime] = Field(None, description="Cited item publication time")
