from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request

from sitepulse.api.deps import get_owned_tenant
from sitepulse.core.config import settings
from sitepulse.core.exceptions import InvalidPeriodError
from sitepulse.core.limiter import limiter
from sitepulse.models.tenant import Tenant
from sitepulse.schemas.analytics import LiveVisitorsResponse, MetricsSnapshot, TimeWindow
from sitepulse.services.analytics_service import AnalyticsService
from sitepulse.services.time_windows import resolve_period, resolve_range

router = APIRouter()

DEFAULT_PERIOD = "30d"


def resolve_window(
    period: str, start: datetime | None, end: datetime | None, now: datetime
) -> TimeWindow:
    """Explicit bounds win over the period token; they must come as a pair."""
    if start is not None or end is not None:
        if start is None or end is None:
            raise InvalidPeriodError("start and end must be given together")
        return resolve_range(start, end)
    return resolve_period(period, now)


@router.get("/{tenant_id}", response_model=MetricsSnapshot)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_metrics(
    request: Request,
    tenant_id: str,
    period: str = Query(DEFAULT_PERIOD),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    tenant: Tenant = Depends(get_owned_tenant),
):
    """Metrics snapshot for a site over a named period or an explicit range."""
    now = datetime.now(timezone.utc)
    window = resolve_window(period, start, end, now)
    service = AnalyticsService()
    return await service.get_snapshot(tenant, window, now=now)


@router.get("/{tenant_id}/live", response_model=LiveVisitorsResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_live_visitors(
    request: Request,
    tenant_id: str,
    tenant: Tenant = Depends(get_owned_tenant),
):
    """Distinct sessions seen in the trailing live window."""
    service = AnalyticsService()
    count, window = await service.get_live_visitors(tenant)
    return LiveVisitorsResponse(
        site_id=tenant.id,
        live_visitors=count,
        window_start=window.start,
        window_end=window.end,
    )
