import logging
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from sitepulse.api.v1.analytics import DEFAULT_PERIOD, resolve_window
from sitepulse.core.exceptions import AppError
from sitepulse.core.security import owner_id_from_token
from sitepulse.schemas.analytics import MetricsSelection, MetricsSnapshot
from sitepulse.services.analytics_service import AnalyticsService
from sitepulse.services.poller import SnapshotPoller
from sitepulse.services.tenant_service import TenantService

logger = logging.getLogger(__name__)

router = APIRouter()


def _validate(selection: MetricsSelection) -> None:
    """Raise InvalidPeriodError now rather than on every refresh."""
    resolve_window(
        selection.period, selection.start, selection.end, datetime.now(timezone.utc)
    )


@router.websocket("/metrics/{tenant_id}")
async def websocket_metrics(
    websocket: WebSocket,
    tenant_id: str,
    token: str | None = None,
    period: str = DEFAULT_PERIOD,
):
    """Push a fresh metrics snapshot on connect and on every refresh interval.

    Connect with: ws://host/api/v1/ws/metrics/{tenant_id}?token=<jwt>&period=7d

    Send ``{"period": "12mo"}`` or ``{"start": ..., "end": ...}`` to switch
    windows (the pending refresh for the old window is dropped), or
    ``{"action": "refresh"}`` to refresh immediately.
    """
    if not token:
        await websocket.close(code=4001, reason="Missing token")
        return
    owner_id = owner_id_from_token(token)
    if owner_id is None:
        await websocket.close(code=4001, reason="Invalid token")
        return

    async with websocket.app.state._db_sessionmaker() as db:  # type: ignore[union-attr]
        try:
            tenant = await TenantService(db).get(tenant_id=tenant_id, owner_id=owner_id)
        except AppError:
            await websocket.close(code=4003, reason="Site not found")
            return

    await websocket.accept()
    service = AnalyticsService()

    async def fetch(selection: MetricsSelection) -> MetricsSnapshot:
        now = datetime.now(timezone.utc)
        window = resolve_window(selection.period, selection.start, selection.end, now)
        return await service.get_snapshot(tenant, window, now=now)

    async def send_snapshot(selection: MetricsSelection, snapshot: MetricsSnapshot) -> None:
        await websocket.send_json({"type": "snapshot", "data": snapshot.model_dump(mode="json")})

    async def send_error(selection: MetricsSelection, detail: str) -> None:
        await websocket.send_json({"type": "error", "error": detail})

    poller: SnapshotPoller[MetricsSelection, MetricsSnapshot] = SnapshotPoller(
        fetch, send_snapshot, send_error
    )

    try:
        initial = MetricsSelection(period=period)
        try:
            _validate(initial)
        except AppError as e:
            await send_error(initial, str(e.detail))
        else:
            poller.select(initial)

        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "error": "Messages must be JSON"})
                continue

            if isinstance(message, dict) and message.get("action") == "refresh":
                poller.refresh()
                continue

            try:
                selection = MetricsSelection.model_validate(message)
                _validate(selection)
            except ValidationError:
                await websocket.send_json({"type": "error", "error": "Invalid selection"})
                continue
            except AppError as e:
                await websocket.send_json({"type": "error", "error": str(e.detail)})
                continue
            poller.select(selection)
    except WebSocketDisconnect:
        logger.debug("Metrics socket for site %s disconnected", tenant_id)
    finally:
        await poller.close()
