from localpulse.ingestion.normalizer import clean_snippet, normalize, select_link
from tests.conftest import ATOM_FEED, NOT_A_FEED, RSS_FEED


class TestNormalize:
    def test_rss_orders_dated_items_newest_first_then_undated(self):
        items = normalize(RSS_FEED)

        assert [i.link for i in items] == [
            "https://news.example.com/budget",
            "https://news.example.com/library",
            "https://news.example.com/storm",
            "https://news.example.com/road",
            "https://news.example.com/market",
        ]
        assert all(i.published_at is not None for i in items[:3])
        assert all(i.published_at is None for i in items[3:])

    def test_rss_summary_is_stripped_of_markup(self):
        items = normalize(RSS_FEED)
        library = next(i for i in items if i.link.endswith("/library"))

        assert library.summary == "The branch opens Monday ."
        assert library.provider == "rss"

    def test_atom_uses_alternate_link(self):
        items = normalize(ATOM_FEED)

        assert len(items) == 1
        assert items[0].link == "https://county.example.gov/news/commission-recap"
        assert items[0].published_at.year == 2025

    def test_html_page_yields_nothing(self):
        assert normalize(NOT_A_FEED) == []

    def test_garbage_yields_nothing(self):
        assert normalize("not xml at all") == []

    def test_items_without_title_and_link_are_dropped(self):
        doc = """<rss version="2.0"><channel><title>x</title>
        <item><description>orphan</description></item>
        <item><title>Kept</title></item>
        </channel></rss>"""

        items = normalize(doc)

        assert [i.title for i in items] == ["Kept"]
        assert items[0].link == ""


class TestSelectLink:
    def test_prefers_html_alternate(self):
        entry = {
            "links": [
                {"rel": "alternate", "type": "application/json", "href": "https://a.example/1.json"},
                {"rel": "alternate", "type": "text/html", "href": "https://a.example/1"},
            ]
        }
        assert select_link(entry) == "https://a.example/1"

    def test_missing_rel_counts_as_alternate(self):
        entry = {"links": [{"href": "https://a.example/post"}]}
        assert select_link(entry) == "https://a.example/post"

    def test_only_non_alternate_links(self):
        entry = {"links": [{"rel": "self", "href": "https://a.example/self"}], "link": "https://a.example/self"}
        assert select_link(entry) == ""

    def test_plain_link_field(self):
        assert select_link({"link": " https://a.example/plain "}) == "https://a.example/plain"


def test_clean_snippet_truncates():
    text = "word " * 200
    result = clean_snippet(text, limit=50)

    assert len(result) <= 50
    assert result.endswith("…")
    assert clean_snippet(None) == ""
