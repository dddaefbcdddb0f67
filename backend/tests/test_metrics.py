"""Unit tests for the single-pass metrics reduction."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from sitepulse.schemas.event import AnalyticsEventData
from sitepulse.services.metrics import (
    MetricsAccumulator,
    bucket_start,
    campaign_of,
    page_path,
    rank,
)

UTC = timezone.utc
T0 = datetime(2024, 5, 15, 10, 0, 0, tzinfo=UTC)


def _event(session_id: str, page_url: str = "https://example.com/x", *, at=T0, **extra):
    return AnalyticsEventData(
        site_id="site-1",
        page_url=page_url,
        session_id=session_id,
        created_at=at,
        **extra,
    )


def _accumulate(events, granularity="daily", top_n=10) -> MetricsAccumulator:
    acc = MetricsAccumulator(granularity, UTC, top_n)
    for event in events:
        acc.add(event)
    return acc


class TestHelpers:
    @pytest.mark.parametrize(
        "url,path",
        [
            ("https://example.com/pricing?plan=pro#top", "/pricing"),
            ("https://example.com", "/"),
            ("/docs/api", "/docs/api"),
            ("http://[::1", "http://[::1"),
        ],
    )
    def test_page_path(self, url: str, path: str):
        assert page_path(url) == path

    def test_campaign_of(self):
        assert campaign_of("https://example.com/?utm_campaign=launch&x=1") == "launch"
        assert campaign_of("https://example.com/?utm_source=x") is None
        assert campaign_of("https://example.com/?utm_campaign=") is None

    def test_bucket_start(self):
        ts = datetime(2024, 5, 15, 10, 42, 17, 5000, tzinfo=UTC)
        assert bucket_start(ts, "minute", UTC) == datetime(2024, 5, 15, 10, 42, tzinfo=UTC)
        assert bucket_start(ts, "hourly", UTC) == datetime(2024, 5, 15, 10, tzinfo=UTC)
        assert bucket_start(ts, "daily", UTC) == datetime(2024, 5, 15, tzinfo=UTC)

    def test_bucket_start_in_repeated_fall_back_hour(self):
        ny = ZoneInfo("America/New_York")
        first = bucket_start(datetime(2024, 11, 3, 5, 30, tzinfo=UTC), "hourly", ny)
        second = bucket_start(datetime(2024, 11, 3, 6, 30, tzinfo=UTC), "hourly", ny)
        assert first.astimezone(UTC) == datetime(2024, 11, 3, 5, tzinfo=UTC)
        assert second.astimezone(UTC) == datetime(2024, 11, 3, 6, tzinfo=UTC)

    def test_rank_orders_by_count_and_keeps_ties_stable(self):
        ranked = rank({"b": 2, "a": 5, "c": 2, "d": 1}, limit=3)
        assert [(r.name, r.count) for r in ranked] == [("a", 5), ("b", 2), ("c", 2)]


class TestAccumulator:
    def test_three_pageviews_two_sessions(self):
        acc = _accumulate([_event("a"), _event("a"), _event("b")])
        totals = acc.totals()
        assert totals.pageviews == 3
        assert totals.unique_visitors == 2
        top_pages = acc.rankings()["top_pages"]
        assert [(r.name, r.count) for r in top_pages] == [("/x", 3)]

    def test_empty_window_is_zeroed(self):
        acc = _accumulate([])
        totals = acc.totals()
        assert totals.pageviews == 0
        assert totals.unique_visitors == 0
        assert totals.bounce_rate == 0.0
        assert totals.avg_visit_duration == 0.0
        assert acc.timeseries() == []
        assert all(items == [] for items in acc.rankings().values())

    def test_bounce_rate_duration_and_views_per_visit(self):
        events = [
            _event("a", at=T0),
            _event("a", at=T0 + timedelta(seconds=90)),
            _event("b", at=T0 + timedelta(minutes=5)),
        ]
        totals = _accumulate(events).totals()
        # b bounced; a stayed 90s, b 0s
        assert totals.bounce_rate == 50.0
        assert totals.avg_visit_duration == 45.0
        assert totals.views_per_visit == 1.5
        assert totals.sessions == 2

    def test_unique_visitors_not_summed_across_buckets(self):
        events = [
            _event("a", at=T0),
            _event("a", at=T0 + timedelta(days=1)),
        ]
        acc = _accumulate(events)
        assert [b.unique_visitors for b in acc.timeseries()] == [1, 1]
        assert acc.totals().unique_visitors == 1

    def test_timeseries_buckets_are_sorted(self):
        events = [
            _event("a", at=T0 + timedelta(hours=2)),
            _event("b", at=T0),
            _event("c", at=T0 + timedelta(hours=2, minutes=30)),
        ]
        series = _accumulate(events, granularity="hourly").timeseries()
        assert [b.timestamp for b in series] == [T0, T0 + timedelta(hours=2)]
        assert [b.pageviews for b in series] == [1, 2]

    def test_fall_back_hours_are_separate_buckets(self):
        ny = ZoneInfo("America/New_York")
        acc = MetricsAccumulator("hourly", ny, 10)
        acc.add(_event("a", at=datetime(2024, 11, 3, 5, 30, tzinfo=UTC)))
        acc.add(_event("b", at=datetime(2024, 11, 3, 6, 30, tzinfo=UTC)))
        series = acc.timeseries()
        assert [b.pageviews for b in series] == [1, 1]
        assert [b.timestamp.utcoffset() for b in series] == [
            timedelta(hours=-4),
            timedelta(hours=-5),
        ]
        assert [b.timestamp.astimezone(UTC).hour for b in series] == [5, 6]

    def test_sources_and_channels(self):
        events = [
            _event("a", referrer="https://www.google.com/search?q=x"),
            _event("b", referrer="https://www.google.com/"),
            _event("c", referrer=None),
            _event("d", referrer="https://unknownsite.example/page"),
        ]
        rankings = _accumulate(events).rankings()
        assert [(r.name, r.count) for r in rankings["top_sources"]] == [
            ("www.google.com", 2),
            ("Direct / None", 1),
            ("unknownsite.example", 1),
        ]
        assert [(r.name, r.count) for r in rankings["top_channels"]] == [
            ("Search", 2),
            ("Direct", 1),
            ("Other", 1),
        ]

    def test_campaigns_and_device_dimensions(self):
        events = [
            _event("a", "https://example.com/?utm_campaign=launch", browser="Chrome", device="Mobile"),
            _event("b", "https://example.com/", browser="Firefox", os="Linux"),
        ]
        rankings = _accumulate(events).rankings()
        assert [(r.name, r.count) for r in rankings["top_campaigns"]] == [("launch", 1)]
        assert [r.name for r in rankings["top_browsers"]] == ["Chrome", "Firefox"]
        # Missing dimension values are counted as Unknown
        assert {r.name for r in rankings["top_os"]} == {"Unknown", "Linux"}
        assert {r.name for r in rankings["top_devices"]} == {"Mobile", "Unknown"}

    def test_top_n_limits_every_list(self):
        events = [_event(f"s{i}", f"https://example.com/p{i}") for i in range(5)]
        rankings = _accumulate(events, top_n=2).rankings()
        assert len(rankings["top_pages"]) == 2
