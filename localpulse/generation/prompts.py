"""Prompt templates for county roundups."""

import re
from typing import List

import pendulum

from ..models import FeedItem
from ..timeutil import TimeWindow
from .llm_provider import Message

PROMPT_VERSION = "v1"

SYSTEM_PROMPT = """You are the editorial writer for LocalPulse, a local news site.
Write ORIGINAL text based ONLY on the provided source list.
Do NOT invent facts. If details are unclear, say so.
Do NOT copy long passages. Use short paraphrases only.
Output MUST be valid JSON with keys:
- title (string)
- dek (string, 1 sentence)
- bullets (array of 4-8 short bullet strings)
- body_markdown (string, 4-10 short paragraphs max)
- used_source_indexes (array of integers referencing the [1..N] items you used)
Rules:
- Include citations inline in body like: (Sources: [1], [3])
- Keep it local and practical.
- Neutral, non-clickbait tone."""


def snippet(text: str, limit: int) -> str:
    return re.sub(r"\s+", " ", text or "").strip()[:limit]


def format_item(index: int, item: FeedItem, region: str, snippet_chars: int) -> str:
    when = (
        pendulum.instance(item.published_at).in_timezone("UTC").format("YYYY-MM-DD HH:mm [UTC]")
        if item.published_at
        else "unknown time"
    )
    return "\n".join(
        [
            f"[{index}] {item.title}",
            f"Source: {item.source_name or 'unknown'} ({region})",
            f"Published: {when}",
            f"Link: {item.link}",
            f"Snippet: {snippet(item.summary, snippet_chars)}",
        ]
    )


def build_messages(
    state: str,
    county: str,
    window: TimeWindow,
    items: List[FeedItem],
    snippet_chars: int = 240,
) -> List[Message]:
    """System and user messages; items are numbered from 1 in the given order."""
    region = f"{state}/{county}"
    sources_block = "\n\n".join(
        format_item(i, item, region, snippet_chars) for i, item in enumerate(items, start=1)
    )
    user = (
        f"Write a county roundup story for {region}.\n"
        f"Time window: {window.start.isoformat()} to {window.end.isoformat()}.\n\n"
        f"SOURCE ITEMS:\n{sources_block}"
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]
