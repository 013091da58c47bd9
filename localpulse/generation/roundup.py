"""County roundup synthesis."""

import json
import logging
import re
from typing import Iterable, List, Optional, Tuple

import psycopg
from psycopg import Connection
from pydantic import ValidationError

from ..config import SynthesisConfig
from ..db.items import ItemRepository
from ..db.stories import StoryRepository
from ..errors import GenerationError
from ..models import FeedItem, Story, StoryCitation
from ..timeutil import TimeWindow
from .llm_provider import GenerationProvider
from .models import GroupOutcome, GroupStatus, RoundupPayload, SynthesisStats
from .prompts import build_messages

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


def parse_payload(text: str) -> RoundupPayload:
    """Parse model output into a payload, tolerating a surrounding code fence."""
    match = FENCE_PATTERN.match(text or "")
    body = match.group(1) if match else (text or "").strip()

    try:
        data = json.loads(body)
    except ValueError as e:
        raise GenerationError("model did not return valid JSON") from e

    if not isinstance(data, dict):
        raise GenerationError("model returned JSON that is not an object")

    try:
        return RoundupPayload.model_validate(data)
    except ValidationError as e:
        raise GenerationError(f"model JSON has the wrong shape: {e.error_count()} errors") from e


def select_citations(
    indexes: Iterable[int],
    prompt_items: List[FeedItem],
    fallback: int = 6,
) -> List[FeedItem]:
    """Distinct in-range 1-based indexes in model order; the first ``fallback`` items when none apply."""
    selected: List[FeedItem] = []
    seen = set()
    for index in indexes:
        if 1 <= index <= len(prompt_items) and index not in seen:
            seen.add(index)
            selected.append(prompt_items[index - 1])

    if not selected:
        selected = prompt_items[:fallback]
    return selected


class SynthesisEngine:
    """Turn each region's recent items into at most one story per window."""

    def __init__(
        self,
        provider: Optional[GenerationProvider],
        config: SynthesisConfig,
        items: Optional[ItemRepository] = None,
        stories: Optional[StoryRepository] = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.items = items or ItemRepository()
        self.stories = stories or StoryRepository()

    def _outcome(self, state: str, county: str, status: GroupStatus, **kwargs) -> GroupOutcome:
        return GroupOutcome(state=state, county=county, status=status, **kwargs)

    def build_story(
        self,
        state: str,
        county: str,
        window: TimeWindow,
        payload: RoundupPayload,
        model_name: str,
    ) -> Story:
        return Story(
            state=state,
            county=county,
            region=f"{state}/{county}",
            story_type=self.config.story_type,
            title=(payload.title or "").strip() or f"{county} County Roundup",
            dek=(payload.dek or "").strip(),
            body_markdown=payload.body_markdown,
            bullets=payload.bullets,
            time_window_start=window.start,
            time_window_end=window.end,
            model_name=model_name,
            prompt_version=self.config.prompt_version,
            status=self.config.story_status,
        )

    def synthesize_region(
        self,
        conn: Connection,
        state: str,
        county: str,
        window: TimeWindow,
        dry_run: bool = False,
    ) -> GroupOutcome:
        """
        Run one group through the synthesis states.

        Database errors fail only this group; the connection is rolled back
        so later groups can reuse it.
        """
        try:
            return self._synthesize_region(conn, state, county, window, dry_run)
        except psycopg.Error as e:
            logger.error("[%s/%s] database error: %s", state, county, e)
            if conn is not None and not conn.closed:
                conn.rollback()
            return self._outcome(state, county, GroupStatus.FAILED, reason=f"database error: {e}")

    def _synthesize_region(
        self,
        conn: Connection,
        state: str,
        county: str,
        window: TimeWindow,
        dry_run: bool,
    ) -> GroupOutcome:
        region = f"{state}/{county}"
        items = self.items.load_window_items(
            conn, state, county, window, limit=self.config.max_items_per_group
        )

        if len(items) < self.config.min_group_size:
            logger.info("[%s] skip: %d items < %d", region, len(items), self.config.min_group_size)
            return self._outcome(state, county, GroupStatus.SKIPPED, reason="too_small", item_count=len(items))

        if self.stories.story_exists(conn, state, county, self.config.story_type, window):
            logger.info("[%s] skip: story already exists for %s", region, window)
            return self._outcome(
                state, county, GroupStatus.SKIPPED, reason="already_exists", item_count=len(items)
            )

        prompt_items = items[: self.config.max_prompt_items]
        messages = build_messages(state, county, window, prompt_items, self.config.snippet_chars)

        if dry_run:
            logger.info("[%s] dry run: would generate from %d items", region, len(prompt_items))
            return self._outcome(state, county, GroupStatus.SKIPPED, reason="dry_run", item_count=len(items))

        try:
            response = self.provider.generate(messages)
            payload = parse_payload(response.text)
        except GenerationError as e:
            logger.error("[%s] generation failed: %s", region, e)
            return self._outcome(state, county, GroupStatus.FAILED, reason=str(e), item_count=len(items))

        story = self.build_story(
            state, county, window, payload, response.model or self.provider.model or ""
        )
        cited = select_citations(payload.used_source_indexes, prompt_items, self.config.fallback_citations)
        citations = [
            StoryCitation(
                feed_item_id=item.id,
                source_link=item.link,
                source_title=item.title,
                source_published_at=item.published_at,
            )
            for item in cited
        ]

        story_id = self.stories.insert_story_with_citations(conn, story, citations)
        if story_id is None:
            logger.info("[%s] skip: another run stored this window first", region)
            return self._outcome(
                state, county, GroupStatus.SKIPPED, reason="already_exists", item_count=len(items)
            )

        logger.info("[%s] story %s \"%s\" with %d citations", region, story_id, story.title, len(citations))
        return self._outcome(
            state,
            county,
            GroupStatus.PERSISTED,
            item_count=len(items),
            story_id=story_id,
            title=story.title,
            citations=len(citations),
        )

    def run(
        self,
        conn: Connection,
        window: TimeWindow,
        regions: Optional[List[Tuple[str, str]]] = None,
        dry_run: bool = False,
    ) -> SynthesisStats:
        """Synthesize every region; one failing group never stops the others."""
        if regions is None:
            regions = self.items.list_regions(conn, window)

        stats = SynthesisStats()
        for state, county in regions:
            stats.add(self.synthesize_region(conn, state, county, window, dry_run=dry_run))

        logger.info(
            "Synthesis %s: created=%d skipped=%d failed=%d",
            window, stats.created, stats.skipped, stats.failed,
        )
        return stats
