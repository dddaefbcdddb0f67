from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Granularity = Literal["minute", "hourly", "daily"]


class TimeWindow(BaseModel):
    """A resolved half-open ``[start, query_end)`` interval and the token it came from.

    Calendar periods that close on the previous day or month report ``end`` as
    the last millisecond before the boundary; ``end_inclusive`` marks them so the
    query still runs up to the boundary itself.
    """

    model_config = ConfigDict(frozen=True)

    period: str
    start: datetime
    end: datetime
    granularity: Granularity
    end_inclusive: bool = Field(default=False, exclude=True)

    @property
    def query_end(self) -> datetime:
        if self.end_inclusive:
            return self.end + timedelta(milliseconds=1)
        return self.end

    @property
    def span(self) -> timedelta:
        return self.end - self.start


class RankedItem(BaseModel):
    """One entry of a top-N list."""

    name: str
    count: int


class TimeseriesBucket(BaseModel):
    """Pageviews and distinct sessions for one time bucket."""

    timestamp: datetime
    pageviews: int
    unique_visitors: int


class SnapshotTotals(BaseModel):
    """Window-wide totals."""

    pageviews: int
    unique_visitors: int
    sessions: int
    bounce_rate: float  # percent of sessions with a single pageview
    avg_visit_duration: float  # seconds
    views_per_visit: float


class MetricsSnapshot(BaseModel):
    """Dashboard-ready aggregate for one site over one window."""

    site_id: str
    period: str
    start: datetime
    end: datetime
    granularity: Granularity
    totals: SnapshotTotals
    timeseries: list[TimeseriesBucket]
    top_pages: list[RankedItem]
    top_sources: list[RankedItem]
    top_channels: list[RankedItem]
    top_campaigns: list[RankedItem]
    top_browsers: list[RankedItem]
    top_os: list[RankedItem]
    top_devices: list[RankedItem]
    live_visitors: int
    generated_at: datetime


class LiveVisitorsResponse(BaseModel):
    """Distinct sessions active in the trailing live window."""

    site_id: str
    live_visitors: int
    window_start: datetime
    window_end: datetime


class MetricsSelection(BaseModel):
    """What a live dashboard is looking at: a period token or explicit bounds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    period: str = "30d"
    start: datetime | None = None
    end: datetime | None = None
