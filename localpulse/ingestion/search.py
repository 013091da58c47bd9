"""Keyword search against the GDELT DOC 2.0 API."""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import IngestConfig, RegionConfig
from ..errors import SearchError
from ..timeutil import TimeWindow, compact_utc, parse_compact_utc
from .models import CanonicalItemDraft, SearchResult
from .normalizer import clean_snippet

logger = logging.getLogger(__name__)

PROVIDER = "gdelt"


def build_params(query: str, window: TimeWindow, max_records: int) -> Dict[str, str]:
    """Query parameters for an article-list request."""
    return {
        "query": query,
        "mode": "ArtList",
        "format": "json",
        "sort": "datedesc",
        "maxrecords": str(max_records),
        "startdatetime": compact_utc(window.start),
        "enddatetime": compact_utc(window.end),
    }


def article_to_draft(article: Dict[str, Any], query: str) -> Optional[CanonicalItemDraft]:
    """Map one article record; records without title and url are dropped."""
    if not isinstance(article, dict):
        return None

    link = article.get("url") or article.get("urlsource") or article.get("sourceurl") or ""
    title = clean_snippet(article.get("title"), limit=1000)
    if not link and not title:
        return None

    return CanonicalItemDraft(
        title=title,
        link=str(link).strip(),
        published_at=parse_compact_utc(article.get("seendate")),
        summary=clean_snippet(article.get("summary") or article.get("description")),
        image=article.get("socialimage") or article.get("image") or None,
        provider=PROVIDER,
        query=query,
    )


class SearchAdapter:
    """Run region queries against the search index."""

    def __init__(
        self,
        config: IngestConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> "SearchAdapter":
        self._client = httpx.Client(
            timeout=self.config.request_timeout,
            headers={"User-Agent": self.config.user_agent},
            transport=self.transport,
        )
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def is_valid_query(self, query: str) -> bool:
        return len(query.strip()) >= self.config.min_keyword_len

    def _fetch(self, params: Dict[str, str]) -> Dict[str, Any]:
        if self._client is None:
            raise RuntimeError("SearchAdapter must be used as a context manager")

        try:
            response = self._client.get(self.config.search_api, params=params)
        except httpx.TimeoutException:
            raise SearchError("request timed out")
        except httpx.HTTPError as e:
            raise SearchError(f"transport error: {e}")

        if not response.is_success:
            raise SearchError(f"HTTP {response.status_code}: {response.text[:300]}")

        try:
            payload = response.json()
        except ValueError:
            # upstream rejects some queries with a plain-text body and status 200
            raise SearchError(f"non-JSON response: {response.text[:300]}")

        if not isinstance(payload, dict):
            raise SearchError("unexpected response shape")
        return payload

    def search(self, region: RegionConfig, query: str, window: TimeWindow) -> SearchResult:
        """Run one query over ``window``; failures are reported, never raised."""
        query = query.strip()

        if not self.is_valid_query(query):
            logger.info("[%s] SKIP_KEYWORD_TOO_SHORT keyword=%r len=%d", region.tag, query, len(query))
            return SearchResult(
                region=region.tag,
                query=query,
                success=False,
                skipped=True,
                error=f"keyword shorter than {self.config.min_keyword_len}",
            )

        params = build_params(query, window, self.config.max_records)
        try:
            payload = self._fetch(params)
        except SearchError as e:
            logger.error("[%s] query=%r failed: %s", region.tag, query, e)
            return SearchResult(region=region.tag, query=query, success=False, error=str(e))

        articles = payload.get("articles") or []
        if not isinstance(articles, list):
            articles = []

        items = []
        for article in articles:
            draft = article_to_draft(article, query)
            if draft is not None:
                items.append(draft)

        logger.info("[%s] %s -> results=%d", region.tag, query, len(items))
        return SearchResult(region=region.tag, query=query, success=True, items=items)

    def search_region(self, region: RegionConfig, window: TimeWindow) -> List[SearchResult]:
        """All phrasings for a region, paced; results are not cross-deduplicated."""
        results = []
        for i, query in enumerate(region.queries):
            result = self.search(region, query, window)
            results.append(result)
            if not result.skipped and self.config.request_delay and i < len(region.queries) - 1:
                time.sleep(self.config.request_delay)
        return results
