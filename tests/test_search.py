import httpx
import pendulum
import pytest

from localpulse.config import RegionConfig
from localpulse.ingestion.search import SearchAdapter, article_to_draft, build_params
from localpulse.timeutil import TimeWindow


def gdelt_articles(count: int):
    return {
        "articles": [
            {
                "url": f"https://wire.example.com/story-{i}",
                "title": f"Escambia story {i}",
                "seendate": "20250106T120000Z",
                "domain": "wire.example.com",
                "socialimage": f"https://wire.example.com/img-{i}.jpg",
            }
            for i in range(count)
        ]
    }


@pytest.fixture
def region() -> RegionConfig:
    return RegionConfig(state="FL", county="Escambia", queries=["Escambia County Florida"])


@pytest.fixture
def window() -> TimeWindow:
    end = pendulum.datetime(2025, 1, 6, 18, 0, 0, tz="UTC")
    return TimeWindow(start=end.subtract(hours=12), end=end)


class TestBuildParams:
    def test_fixed_parameters(self, window):
        params = build_params("Escambia County Florida", window, 50)

        assert params == {
            "query": "Escambia County Florida",
            "mode": "ArtList",
            "format": "json",
            "sort": "datedesc",
            "maxrecords": "50",
            "startdatetime": "20250106060000",
            "enddatetime": "20250106180000",
        }


class TestArticleToDraft:
    def test_maps_fields(self):
        draft = article_to_draft(
            {
                "urlsource": "https://wire.example.com/a",
                "title": "Headline",
                "seendate": "20250106123000",
                "description": "Short summary",
                "image": "https://wire.example.com/a.jpg",
            },
            "Escambia County Florida",
        )

        assert draft.link == "https://wire.example.com/a"
        assert draft.published_at == pendulum.datetime(2025, 1, 6, 12, 30, 0, tz="UTC")
        assert draft.summary == "Short summary"
        assert draft.image == "https://wire.example.com/a.jpg"
        assert draft.domain == "wire.example.com"
        assert draft.provider == "gdelt"
        assert draft.query == "Escambia County Florida"

    def test_bad_seendate_is_unknown(self):
        draft = article_to_draft({"url": "https://x.example/1", "title": "T", "seendate": "yesterday"}, "q")
        assert draft.published_at is None

    def test_empty_record_dropped(self):
        assert article_to_draft({"language": "English"}, "q") is None
        assert article_to_draft("not a dict", "q") is None


class TestSearchAdapter:
    @pytest.fixture(autouse=True)
    def setup_adapter(self, ingest_config):
        self.requests = []
        self.response = httpx.Response(200, json=gdelt_articles(10))

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.response

        self.adapter = SearchAdapter(ingest_config, transport=httpx.MockTransport(handler))

    def test_returns_all_results(self, region, window):
        with self.adapter as adapter:
            result = adapter.search(region, "Escambia County Florida", window)

        assert result.success
        assert len(result.items) == 10
        assert self.requests[0].url.params["mode"] == "ArtList"
        assert self.requests[0].headers["User-Agent"].startswith("LocalPulseBot")

    def test_short_keyword_is_skipped_without_request(self, region, window):
        with self.adapter as adapter:
            result = adapter.search(region, " FL ", window)

        assert result.skipped
        assert not result.success
        assert self.requests == []

    def test_non_json_body_is_query_failure(self, region, window):
        self.response = httpx.Response(200, text="The specified phrase is too short.")

        with self.adapter as adapter:
            result = adapter.search(region, "Escambia County Florida", window)

        assert not result.success
        assert not result.skipped
        assert "non-JSON" in result.error

    def test_http_error_is_query_failure(self, region, window):
        self.response = httpx.Response(503, text="busy")

        with self.adapter as adapter:
            result = adapter.search(region, "Escambia County Florida", window)

        assert not result.success
        assert "HTTP 503" in result.error

    def test_missing_articles_key_means_no_results(self, region, window):
        self.response = httpx.Response(200, json={})

        with self.adapter as adapter:
            result = adapter.search(region, "Escambia County Florida", window)

        assert result.success
        assert result.items == []

    def test_search_region_runs_every_query(self, window):
        region = RegionConfig(state="FL", county="Escambia", queries=["Escambia County Florida", "abc", "Pensacola"])

        with self.adapter as adapter:
            results = adapter.search_region(region, window)

        assert [r.skipped for r in results] == [False, True, False]
        assert len(self.requests) == 2
        assert sum(len(r.items) for r in results) == 20

    def test_requires_context_manager(self, region, window):
        with pytest.raises(RuntimeError):
            self.adapter._fetch({})
