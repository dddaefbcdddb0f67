import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import (
    EventValidationError,
    TenantNotFoundError,
    UnauthorizedError,
)
from sitepulse.schemas.event import AnalyticsEventData, PageviewIn
from sitepulse.services.credentials import resolve_store_handle
from sitepulse.services.event_store import open_event_store
from sitepulse.services.tenant_service import TenantService
from sitepulse.services.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


def _validation_detail(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


class IngestionService:
    """Authenticate a tracker request and write the pageview to the site's store."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tenants = TenantService(db)

    async def ingest(
        self, tenant_id: str | None, api_key: str | None, raw_event: dict[str, Any]
    ) -> AnalyticsEventData:
        """Run the full ingestion pipeline for one event.

        Each failure branch raises before the store is touched, so either one
        event is persisted or none is. Duplicate submissions are stored twice.

        Raises:
            UnauthorizedError: No bearer credential was presented.
            TenantNotFoundError: Unknown site id or wrong API key (same error).
            TenantNotConfiguredError: The site has no usable store yet.
            EventValidationError: A required field is missing or malformed.
            StoreWriteError: The site's store rejected the write.
        """
        if not api_key:
            raise UnauthorizedError("Missing or invalid authorization header")

        tenant = None
        if isinstance(tenant_id, str) and tenant_id:
            tenant = await self.tenants.lookup_by_api_key(tenant_id, api_key)
        if tenant is None:
            logger.info("Rejected event: unknown site or API key mismatch")
            raise TenantNotFoundError()

        handle = resolve_store_handle(tenant)

        try:
            pageview = PageviewIn.model_validate(raw_event)
        except ValidationError as e:
            logger.info("Rejected malformed event for site %s", tenant.id)
            raise EventValidationError(_validation_detail(e)) from None

        agent = parse_user_agent(pageview.user_agent)
        event = AnalyticsEventData(
            site_id=tenant.id,
            event_type=pageview.event_type,
            page_url=pageview.page_url,
            referrer=pageview.referrer,
            user_agent=pageview.user_agent,
            country=pageview.country,
            city=pageview.city,
            browser=agent.browser,
            os=agent.os,
            device=agent.device,
            session_id=pageview.session_id,
        )

        async with open_event_store(handle) as store:
            stored = await store.write(event)
        logger.debug("Stored pageview %s for site %s", stored.id, tenant.id)
        return stored
