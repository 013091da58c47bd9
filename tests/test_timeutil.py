import pendulum
import pytest

from localpulse.timeutil import (
    TimeWindow,
    aligned_window,
    compact_utc,
    lookback_window,
    parse_compact_utc,
    parse_iso,
)


class TestAlignedWindow:
    def test_daily_window_ends_at_utc_midnight(self):
        window = aligned_window(24, now=pendulum.datetime(2025, 1, 6, 15, 30, tz="UTC"))

        assert window.end == pendulum.datetime(2025, 1, 6, tz="UTC")
        assert window.start == pendulum.datetime(2025, 1, 5, tz="UTC")

    def test_same_period_gives_same_window(self):
        first = aligned_window(6, now=pendulum.datetime(2025, 1, 6, 13, 1, tz="UTC"))
        second = aligned_window(6, now=pendulum.datetime(2025, 1, 6, 17, 59, tz="UTC"))

        assert first == second
        assert first.end == pendulum.datetime(2025, 1, 6, 12, tz="UTC")

    def test_non_utc_input(self):
        now = pendulum.datetime(2025, 1, 6, 20, 0, tz="America/Chicago")  # 02:00 UTC next day
        assert aligned_window(24, now=now).end == pendulum.datetime(2025, 1, 7, tz="UTC")


def test_lookback_window_length():
    end = pendulum.datetime(2025, 1, 6, 18, 0, 0, 123456, tz="UTC")
    window = lookback_window(12, end=end)

    assert window.end == pendulum.datetime(2025, 1, 6, 18, tz="UTC")
    assert window.start == pendulum.datetime(2025, 1, 6, 6, tz="UTC")


def test_window_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        TimeWindow(start=pendulum.datetime(2025, 1, 2), end=pendulum.datetime(2025, 1, 1))


def test_window_contains_unknown_time():
    window = aligned_window(24, now=pendulum.datetime(2025, 1, 6, tz="UTC"))

    assert window.contains(None)
    assert window.contains(window.start)
    assert not window.contains(window.end)


@pytest.mark.parametrize("value", ["20250106123000", "20250106T123000Z"])
def test_parse_compact_utc_formats(value):
    assert parse_compact_utc(value) == pendulum.datetime(2025, 1, 6, 12, 30, tz="UTC")


@pytest.mark.parametrize("value", [None, "", "2025-01-06", "20251306123000", 20250106123000])
def test_parse_compact_utc_rejects(value):
    assert parse_compact_utc(value) is None


def test_compact_utc_converts_timezone():
    moment = pendulum.datetime(2025, 1, 6, 7, 0, tz="America/Chicago")
    assert compact_utc(moment) == "20250106130000"


def test_parse_iso_assumes_utc():
    assert parse_iso("2025-01-06T00:00:00") == pendulum.datetime(2025, 1, 6, tz="UTC")
    with pytest.raises(ValueError):
        parse_iso("not a date")
