import logging
import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone, tzinfo

from sitepulse.core.config import settings
from sitepulse.models.tenant import Tenant
from sitepulse.schemas.analytics import MetricsSnapshot, TimeWindow
from sitepulse.services.credentials import StoreHandle, resolve_store_handle
from sitepulse.services.event_store import EventStore, open_event_store
from sitepulse.services.metrics import MetricsAccumulator
from sitepulse.services.time_windows import default_timezone, live_window

logger = logging.getLogger(__name__)

StoreOpener = Callable[[StoreHandle], AbstractAsyncContextManager[EventStore]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsService:
    """Computes metrics snapshots for a site straight from its raw events.

    Nothing is cached: every call reads the store again.
    """

    def __init__(
        self,
        *,
        store_opener: StoreOpener = open_event_store,
        clock: Callable[[], datetime] = _utcnow,
        tz: tzinfo | None = None,
        top_n: int | None = None,
    ):
        self._open_store = store_opener
        self._clock = clock
        self.tz = tz or default_timezone()
        self.top_n = top_n or settings.TOP_N_LIMIT

    async def _live_visitors(self, store: EventStore, tenant_id: str, now: datetime) -> int:
        window = live_window(now)
        sessions = {
            event.session_id
            async for event in store.iter_events(tenant_id, window.start, window.query_end)
        }
        return len(sessions)

    async def get_snapshot(
        self, tenant: Tenant, window: TimeWindow, now: datetime | None = None
    ) -> MetricsSnapshot:
        """Aggregate a site's events in ``window`` into a snapshot.

        The live-visitor count always covers the trailing live window ending
        at ``now``, whatever ``window`` is. An empty window yields a zeroed
        snapshot, not an error.

        Raises:
            TenantNotConfiguredError: The site has no usable store.
            StoreReadError: The store could not be read.
        """
        now = now or self._clock()
        handle = resolve_store_handle(tenant)
        accumulator = MetricsAccumulator(window.granularity, self.tz, self.top_n)

        started = time.perf_counter()
        async with self._open_store(handle) as store:
            async for event in store.iter_events(tenant.id, window.start, window.query_end):
                accumulator.add(event)
            live_visitors = await self._live_visitors(store, tenant.id, now)

        logger.debug(
            "Aggregated %d events for site %s (%s) in %.1f ms",
            accumulator.pageviews,
            tenant.id,
            window.period,
            (time.perf_counter() - started) * 1000,
        )

        return MetricsSnapshot(
            site_id=tenant.id,
            period=window.period,
            start=window.start,
            end=window.end,
            granularity=window.granularity,
            totals=accumulator.totals(),
            timeseries=accumulator.timeseries(),
            live_visitors=live_visitors,
            generated_at=now,
            **accumulator.rankings(),
        )

    async def get_live_visitors(
        self, tenant: Tenant, now: datetime | None = None
    ) -> tuple[int, TimeWindow]:
        """Distinct sessions in the trailing live window, with that window."""
        now = now or self._clock()
        handle = resolve_store_handle(tenant)
        async with self._open_store(handle) as store:
            count = await self._live_visitors(store, tenant.id, now)
        return count, live_window(now)
