"""Single-pass reduction of a pageview stream into dashboard metrics.

``MetricsAccumulator.add`` is called once per event as it streams out of the
store, so memory grows with the number of distinct sessions / pages /
sources rather than with the number of events.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, time, timezone, tzinfo
from urllib.parse import parse_qs, urlsplit

from sitepulse.schemas.analytics import (
    Granularity,
    RankedItem,
    SnapshotTotals,
    TimeseriesBucket,
)
from sitepulse.schemas.event import AnalyticsEventData
from sitepulse.services.channels import classify_channel, referrer_host
from sitepulse.services.user_agent import UNKNOWN

CAMPAIGN_PARAM = "utm_campaign"


def page_path(page_url: str) -> str:
    """Path of a page URL with scheme, host, query and fragment removed.

    Anything ``urlsplit`` rejects is returned verbatim.
    """
    try:
        parts = urlsplit(page_url)
    except ValueError:
        return page_url
    if parts.path:
        return parts.path
    return "/" if parts.netloc else page_url


def campaign_of(page_url: str) -> str | None:
    """Value of the ``utm_campaign`` query parameter, if any."""
    try:
        query = urlsplit(page_url).query
    except ValueError:
        return None
    for value in parse_qs(query).get(CAMPAIGN_PARAM, ()):
        if value.strip():
            return value.strip()
    return None


def bucket_start(ts: datetime, granularity: Granularity, tz: tzinfo) -> datetime:
    """Start of the bucket holding ``ts``, in local time."""
    local = ts.astimezone(tz)
    if granularity == "minute":
        return local.replace(second=0, microsecond=0)
    if granularity == "hourly":
        return local.replace(minute=0, second=0, microsecond=0)
    return datetime.combine(local.date(), time.min, tzinfo=tz)


def rank(counts: dict[str, int], limit: int) -> list[RankedItem]:
    """Descending by count; equal counts keep first-encountered order."""
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [RankedItem(name=name, count=count) for name, count in ordered[:limit]]


@dataclass
class _Bucket:
    pageviews: int = 0
    sessions: set[str] = field(default_factory=set)


@dataclass
class _Visit:
    first_seen: datetime
    last_seen: datetime
    pageviews: int = 0


class MetricsAccumulator:
    """Accumulates counts for one window; call ``add`` per event."""

    def __init__(self, granularity: Granularity, tz: tzinfo, top_n: int):
        self.granularity = granularity
        self.tz = tz
        self.top_n = top_n
        self.pageviews = 0
        # Keyed by UTC instant; local times sharing a tzinfo compare by wall clock
        self._buckets: dict[datetime, _Bucket] = defaultdict(_Bucket)
        self._visits: dict[str, _Visit] = {}
        self._pages: dict[str, int] = defaultdict(int)
        self._sources: dict[str, int] = defaultdict(int)
        self._channels: dict[str, int] = defaultdict(int)
        self._campaigns: dict[str, int] = defaultdict(int)
        self._browsers: dict[str, int] = defaultdict(int)
        self._os: dict[str, int] = defaultdict(int)
        self._devices: dict[str, int] = defaultdict(int)

    def add(self, event: AnalyticsEventData) -> None:
        ts = event.created_at
        self.pageviews += 1

        start = bucket_start(ts, self.granularity, self.tz)
        bucket = self._buckets[start.astimezone(timezone.utc)]
        bucket.pageviews += 1
        bucket.sessions.add(event.session_id)

        visit = self._visits.get(event.session_id)
        if visit is None:
            visit = self._visits[event.session_id] = _Visit(first_seen=ts, last_seen=ts)
        visit.first_seen = min(visit.first_seen, ts)
        visit.last_seen = max(visit.last_seen, ts)
        visit.pageviews += 1

        self._pages[page_path(event.page_url)] += 1

        host = referrer_host(event.referrer)
        self._sources[host] += 1
        self._channels[classify_channel(host)] += 1

        campaign = campaign_of(event.page_url)
        if campaign is not None:
            self._campaigns[campaign] += 1

        self._browsers[event.browser or UNKNOWN] += 1
        self._os[event.os or UNKNOWN] += 1
        self._devices[event.device or UNKNOWN] += 1

    @property
    def unique_visitors(self) -> int:
        return len(self._visits)

    def totals(self) -> SnapshotTotals:
        sessions = len(self._visits)
        if sessions:
            bounces = sum(1 for v in self._visits.values() if v.pageviews == 1)
            durations = [
                (v.last_seen - v.first_seen).total_seconds() for v in self._visits.values()
            ]
            bounce_rate = round(bounces * 100 / sessions, 2)
            avg_duration = round(sum(durations) / sessions, 2)
            views_per_visit = round(self.pageviews / sessions, 2)
        else:
            bounce_rate = avg_duration = views_per_visit = 0.0
        return SnapshotTotals(
            pageviews=self.pageviews,
            unique_visitors=self.unique_visitors,
            sessions=sessions,
            bounce_rate=bounce_rate,
            avg_visit_duration=avg_duration,
            views_per_visit=views_per_visit,
        )

    def timeseries(self) -> list[TimeseriesBucket]:
        return [
            TimeseriesBucket(
                timestamp=key.astimezone(self.tz),
                pageviews=b.pageviews,
                unique_visitors=len(b.sessions),
            )
            for key, b in sorted(self._buckets.items())
        ]

    def rankings(self) -> dict[str, list[RankedItem]]:
        return {
            "top_pages": rank(self._pages, self.top_n),
            "top_sources": rank(self._sources, self.top_n),
            "top_channels": rank(self._channels, self.top_n),
            "top_campaigns": rank(self._campaigns, self.top_n),
            "top_browsers": rank(self._browsers, self.top_n),
            "top_os": rank(self._os, self.top_n),
            "top_devices": rank(self._devices, self.top_n),
        }
