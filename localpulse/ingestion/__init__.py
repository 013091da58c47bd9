"""Feed resolution, normalization and search ingestion."""

from .models import CanonicalItemDraft, FeedResult, ResolvedFeed, SearchResult, content_signature
from .normalizer import normalize, select_link
from .resolver import FeedResolver, candidate_urls
from .search import SearchAdapter

__all__ = [
    "CanonicalItemDraft",
    "FeedResolver",
    "FeedResult",
    "ResolvedFeed",
    "SearchAdapter",
    "SearchResult",
    "candidate_urls",
    "content_signature",
    "normalize",
    "select_link",
]
