"""Feed resolver: find one fetchable feed per source."""

import asyncio
import logging
from typing import List, Optional
from urllib.parse import urljoin

import httpx

from ..config import IngestConfig, SourceConfig
from .models import FeedResult, ResolvedFeed
from .normalizer import normalize

logger = logging.getLogger(__name__)

# Conventional feed locations, probed after the configured feed URL
FEED_PATHS = (
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
    "/?feed=rss2",  # WordPress
    "/feeds/posts/default",  # Blogger
    "/arc/outboundfeeds/rss/",  # Arc XP
)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.9, */*;q=0.5"


def candidate_urls(source: SourceConfig) -> List[str]:
    """Explicit feed URL first, then paths derived from the homepage."""
    candidates = []
    if source.rss_url:
        candidates.append(source.rss_url)

    homepage = source.website_url
    if homepage:
        if "://" not in homepage:
            homepage = f"https://{homepage}"
        base = homepage.rstrip("/") + "/"
        for path in FEED_PATHS:
            candidates.append(urljoin(base, path.lstrip("/")))

    deduped = []
    for url in candidates:
        if url not in deduped:
            deduped.append(url)
    return deduped


class FeedResolver:
    """Probe candidate feed URLs in order until one parses into items."""

    def __init__(
        self,
        config: IngestConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.request_timeout,
            follow_redirects=True,
            headers={"User-Agent": self.config.user_agent, "Accept": FEED_ACCEPT},
            transport=self.transport,
        )

    async def _probe(self, client: httpx.AsyncClient, url: str) -> Optional[ResolvedFeed]:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.debug("Timed out: %s", url)
            return None
        except httpx.HTTPStatusError as e:
            logger.debug("HTTP %s: %s", e.response.status_code, url)
            return None
        except httpx.HTTPError as e:
            logger.debug("Transport error for %s: %s", url, e)
            return None

        items = normalize(response.text)
        if not items:
            logger.debug("No feed items in %s", url)
            return None

        return ResolvedFeed(url=url, raw_document=response.text, items=items)

    async def resolve(self, source: SourceConfig, client: httpx.AsyncClient) -> FeedResult:
        """Return the first candidate that yields items, or an unsuccessful result."""
        candidates = candidate_urls(source)
        tried = 0

        for url in candidates:
            if tried and self.config.request_delay:
                await asyncio.sleep(self.config.request_delay)
            tried += 1

            resolved = await self._probe(client, url)
            if resolved is not None:
                logger.info(
                    "[%s/%s] %s: %d items from %s",
                    source.state, source.county, source.source_name, len(resolved.items), url,
                )
                return FeedResult(
                    source_name=source.source_name,
                    region=f"{source.state}/{source.county}",
                    success=True,
                    feed_url=resolved.url,
                    items=resolved.items,
                    candidates_tried=tried,
                )

        reason = "no feed candidates" if not candidates else f"no parseable feed among {tried} candidates"
        logger.warning("[%s/%s] %s: %s", source.state, source.county, source.source_name, reason)
        return FeedResult(
            source_name=source.source_name,
            region=f"{source.state}/{source.county}",
            success=False,
            candidates_tried=tried,
            error=reason,
        )

    async def resolve_all(self, sources: List[SourceConfig]) -> List[FeedResult]:
        """Resolve every source, at most ``max_concurrent`` at a time."""
        if not sources:
            return []

        # Create semaphore for concurrency control
        semaphore = asyncio.Semaphore(self.config.max_concurrent)

        async with self._client() as client:
            started = 0

            async def resolve_with_semaphore(source: SourceConfig) -> FeedResult:
                nonlocal started
                async with semaphore:
                    started += 1
                    result = await self.resolve(source, client)
                    # pause only while other sources still wait for a slot
                    if self.config.request_delay and started < len(sources):
                        await asyncio.sleep(self.config.request_delay)
                    return result

            tasks = [resolve_with_semaphore(source) for source in sources]
            return await asyncio.gather(*tasks)

    def resolve_sync(self, sources: List[SourceConfig]) -> List[FeedResult]:
        """Synchronous wrapper for resolve_all."""
        return asyncio.run(self.resolve_all(sources))
