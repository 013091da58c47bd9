import json

import pendulum
import psycopg
import pytest

from localpulse.generation import MockGenerationProvider, SynthesisEngine, parse_payload, select_citations
from localpulse.generation.models import GroupStatus
from localpulse.generation.prompts import build_messages
from localpulse.errors import GenerationError
from localpulse.timeutil import aligned_window
from tests.conftest import FakeConnection, FakeItemRepository, FakeStoryRepository, make_item

WINDOW = aligned_window(24, now=pendulum.datetime(2025, 1, 7, 3, tz="UTC"))


def items_in_window(count, county="Escambia"):
    base = pendulum.datetime(2025, 1, 6, 20, tz="UTC")
    return [make_item(i, county=county, published_at=base.subtract(minutes=i)) for i in range(1, count + 1)]


def payload(**overrides):
    data = {
        "title": "Escambia this week",
        "dek": "What happened.",
        "bullets": ["One", "Two"],
        "body_markdown": "Things happened (Sources: [1], [2]).",
        "used_source_indexes": [2, 1],
    }
    data.update(overrides)
    return json.dumps(data)


class TestSynthesisEngine:
    @pytest.fixture(autouse=True)
    def setup_repos(self, synthesis_config):
        self.config = synthesis_config
        self.stories = FakeStoryRepository()

    def engine(self, items, responses=None):
        self.provider = MockGenerationProvider(responses=responses)
        return SynthesisEngine(self.provider, self.config, FakeItemRepository(items), self.stories)

    def test_two_items_never_produce_a_story(self):
        outcome = self.engine(items_in_window(2)).synthesize_region(None, "FL", "Escambia", WINDOW)

        assert outcome.status == GroupStatus.SKIPPED
        assert outcome.reason == "too_small"
        assert self.provider.calls == []

    def test_three_items_produce_a_story(self):
        outcome = self.engine(items_in_window(3), [payload()]).synthesize_region(None, "FL", "Escambia", WINDOW)

        assert outcome.status == GroupStatus.PERSISTED
        assert outcome.citations == 2
        citations = self.stories.citations[outcome.story_id]
        assert [c.feed_item_id for c in citations] == [2, 1]

    def test_story_fields(self):
        self.engine(items_in_window(3), [payload()]).synthesize_region(None, "FL", "Escambia", WINDOW)

        [story] = self.stories.stories.values()
        assert story.region == "FL/Escambia"
        assert story.story_type == "roundup"
        assert story.time_window_start == WINDOW.start
        assert story.time_window_end == WINDOW.end
        assert story.model_name == "mock"
        assert story.prompt_version == "v1"
        assert story.status == "published"
        assert story.bullets == ["One", "Two"]

    def test_second_run_in_same_window_is_skipped(self):
        engine = self.engine(items_in_window(5), [payload(), payload()])

        first = engine.synthesize_region(None, "FL", "Escambia", WINDOW)
        second = engine.synthesize_region(None, "FL", "Escambia", WINDOW)

        assert first.status == GroupStatus.PERSISTED
        assert second.status == GroupStatus.SKIPPED
        assert second.reason == "already_exists"
        assert len(self.provider.calls) == 1
        assert len(self.stories.stories) == 1

    def test_lost_insert_race_is_already_exists(self):
        self.stories = FakeStoryRepository(always_report_missing=True)
        engine = self.engine(items_in_window(3), [payload(), payload()])

        engine.synthesize_region(None, "FL", "Escambia", WINDOW)
        second = engine.synthesize_region(None, "FL", "Escambia", WINDOW)

        assert second.status == GroupStatus.SKIPPED
        assert second.reason == "already_exists"

    def test_no_valid_indexes_cite_first_six_prompt_items(self):
        items = items_in_window(10)
        outcome = self.engine(items, [payload(used_source_indexes=[0, 99, -1])]).synthesize_region(
            None, "FL", "Escambia", WINDOW
        )

        citations = self.stories.citations[outcome.story_id]
        assert [c.feed_item_id for c in citations] == [1, 2, 3, 4, 5, 6]

    def test_invalid_json_fails_the_group(self):
        outcome = self.engine(items_in_window(4), ["Sure! Here is your story."]).synthesize_region(
            None, "FL", "Escambia", WINDOW
        )

        assert outcome.status == GroupStatus.FAILED
        assert self.stories.stories == {}

    def test_missing_title_uses_county_fallback(self):
        self.engine(items_in_window(3), [payload(title="")]).synthesize_region(None, "FL", "Escambia", WINDOW)

        [story] = self.stories.stories.values()
        assert story.title == "Escambia County Roundup"

    def test_items_outside_window_do_not_count(self):
        items = items_in_window(2) + [make_item(50, published_at=WINDOW.start.subtract(hours=1))]

        outcome = self.engine(items).synthesize_region(None, "FL", "Escambia", WINDOW)

        assert outcome.reason == "too_small"

    def test_undated_items_are_eligible(self):
        items = items_in_window(2) + [make_item(60)]

        outcome = self.engine(items, [payload()]).synthesize_region(None, "FL", "Escambia", WINDOW)

        assert outcome.status == GroupStatus.PERSISTED

    def test_prompt_holds_at_most_twenty_items(self):
        self.engine(items_in_window(30), [payload()]).synthesize_region(None, "FL", "Escambia", WINDOW)

        user = self.provider.calls[0][1]["content"]
        assert "[20] " in user
        assert "[21] " not in user

    def test_dry_run_generates_nothing(self):
        engine = SynthesisEngine(None, self.config, FakeItemRepository(items_in_window(5)), self.stories)

        outcome = engine.synthesize_region(None, "FL", "Escambia", WINDOW, dry_run=True)

        assert outcome.status == GroupStatus.SKIPPED
        assert outcome.reason == "dry_run"
        assert self.stories.stories == {}

    def test_run_counts_every_region(self):
        items = items_in_window(3) + items_in_window(1, county="Santa Rosa")
        for i, item in enumerate(items[3:], start=100):
            item.id = i

        stats = self.engine(items, [payload()]).run(None, WINDOW)

        assert stats.created == 1
        assert stats.skipped == 1
        assert stats.failed == 0

    def test_database_error_fails_only_its_region(self):
        items = items_in_window(3, county="Bay") + items_in_window(3)
        for i, item in enumerate(items[3:], start=100):
            item.id = i
        conn = FakeConnection()
        self.stories = BrokenStoryRepository(broken_county="Bay")

        stats = self.engine(items, [payload(), payload()]).run(conn, WINDOW)

        assert stats.created == 1
        assert stats.failed == 1
        assert conn.rollbacks == 1
        [story] = self.stories.stories.values()
        assert story.county == "Escambia"
        bay = [o for o in stats.outcomes if o.county == "Bay"][0]
        assert bay.status == GroupStatus.FAILED
        assert "database error" in bay.reason


class BrokenStoryRepository(FakeStoryRepository):
    def __init__(self, broken_county):
        super().__init__()
        self.broken_county = broken_county

    def insert_story_with_citations(self, conn, story, citations):
        if story.county == self.broken_county:
            raise psycopg.errors.ForeignKeyViolation("feed item vanished")
        return super().insert_story_with_citations(conn, story, citations)


class TestParsePayload:
    def test_code_fence_is_tolerated(self):
        parsed = parse_payload("```json\n" + payload() + "\n```")
        assert parsed.title == "Escambia this week"

    def test_empty_body_rejected(self):
        with pytest.raises(GenerationError):
            parse_payload(payload(body_markdown="  "))

    def test_bullets_must_be_strings(self):
        with pytest.raises(GenerationError):
            parse_payload(payload(bullets=[1, 2]))

    def test_indexes_must_be_integers(self):
        with pytest.raises(GenerationError):
            parse_payload(payload(used_source_indexes=["1"]))

    def test_json_array_rejected(self):
        with pytest.raises(GenerationError):
            parse_payload("[]")

    def test_null_lists_are_empty(self):
        parsed = parse_payload(payload(bullets=None, used_source_indexes=None))
        assert parsed.bullets == []
        assert parsed.used_source_indexes == []


def test_select_citations_dedupes_in_model_order():
    items = items_in_window(8)

    selected = select_citations([3, 3, 1, 9, 2], items)

    assert [i.id for i in selected] == [3, 1, 2]


def test_prompt_snippets_are_truncated():
    item = make_item(1, title="Long one")
    item.summary = "x" * 1000

    messages = build_messages("FL", "Escambia", WINDOW, [item], snippet_chars=240)

    assert messages[0]["role"] == "system"
    assert messages[1]["content"].endswith("Snippet: " + "x" * 240)
    assert "Published: unknown time" in messages[1]["content"]
