"""Data models for LocalPulse."""

from .item import FeedItem
from .source import Source
from .story import Story, StoryCitation

__all__ = ["FeedItem", "Source", "Story", "StoryCitation"]
