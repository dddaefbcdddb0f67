"""Resolve period tokens into concrete ``[start, end)`` windows.

Every function takes ``now`` explicitly and never reads the wall clock itself,
so results are a pure function of their arguments.
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from sitepulse.core.config import settings
from sitepulse.core.exceptions import InvalidPeriodError
from sitepulse.schemas.analytics import Granularity, TimeWindow

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)
CUSTOM_PERIOD = "custom"
LIVE_PERIOD = "live"

PERIOD_TOKENS = (
    "realtime",
    "day",
    "yesterday",
    "7d",
    "30d",
    "month",
    "lastMonth",
    "12mo",
    "all",
)


def default_timezone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def _as_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _midnight(day, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _first_of_month(dt: datetime, tz: tzinfo) -> datetime:
    return _midnight(dt.date().replace(day=1), tz)


def _one_year_before(dt: datetime) -> datetime:
    try:
        return dt.replace(year=dt.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return dt.replace(year=dt.year - 1, day=28)


def granularity_for(start: datetime, end: datetime) -> Granularity:
    """Bucket size for a window: minutes up to an hour, hours up to a day."""
    span = end - start
    if span <= timedelta(hours=1):
        return "minute"
    if span <= timedelta(days=1):
        return "hourly"
    return "daily"


def _window(
    period: str, start: datetime, end: datetime, *, end_inclusive: bool = False
) -> TimeWindow:
    return TimeWindow(
        period=period,
        start=start,
        end=end,
        granularity=granularity_for(start, end),
        end_inclusive=end_inclusive,
    )


def resolve_period(token: str, now: datetime, tz: tzinfo | None = None) -> TimeWindow:
    """Map a period token to a window ending at (or before) ``now``.

    Calendar boundaries (``day``, ``yesterday``, ``month``, ``lastMonth``) are
    computed in ``tz``, defaulting to the configured ``TIMEZONE``.

    ``yesterday`` and ``lastMonth`` report their end as one millisecond before
    midnight but are queried up to midnight itself (see ``TimeWindow.query_end``),
    so they meet ``day`` and ``month`` with no gap.

    Raises:
        InvalidPeriodError: If the token is not one of ``PERIOD_TOKENS``.
    """
    tz = tz or default_timezone()
    now = _as_aware(now)
    local_now = now.astimezone(tz)
    today = _midnight(local_now.date(), tz)

    if token == "realtime":
        return _window(token, now - timedelta(minutes=30), now)
    if token == "day":
        return _window(token, today, now)
    if token == "yesterday":
        start = _midnight(local_now.date() - timedelta(days=1), tz)
        return _window(token, start, today - ONE_MS, end_inclusive=True)
    if token == "7d":
        return _window(token, now - timedelta(days=7), now)
    if token == "30d":
        return _window(token, now - timedelta(days=30), now)
    if token == "month":
        return _window(token, _first_of_month(local_now, tz), now)
    if token == "lastMonth":
        this_month = _first_of_month(local_now, tz)
        last_month = _first_of_month(this_month - timedelta(days=1), tz)
        return _window(token, last_month, this_month - ONE_MS, end_inclusive=True)
    if token == "12mo":
        return _window(token, _one_year_before(now), now)
    if token == "all":
        return _window(token, EPOCH, now)

    raise InvalidPeriodError(
        f"Unknown period '{token}'. Expected one of: {', '.join(PERIOD_TOKENS)}"
    )


def resolve_range(start: datetime, end: datetime) -> TimeWindow:
    """Build a window from explicit bounds.

    Raises:
        InvalidPeriodError: If ``start`` is not strictly before ``end``.
    """
    start, end = _as_aware(start), _as_aware(end)
    if start >= end:
        raise InvalidPeriodError("start must be before end")
    return _window(CUSTOM_PERIOD, start, end)


def live_window(now: datetime) -> TimeWindow:
    """Fixed trailing window for the live-visitor count, independent of any selection."""
    now = _as_aware(now)
    return _window(LIVE_PERIOD, now - timedelta(minutes=settings.LIVE_WINDOW_MINUTES), now)
