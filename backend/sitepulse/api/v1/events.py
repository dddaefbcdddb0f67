import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.api.deps import get_bearer_token
from sitepulse.core.config import settings
from sitepulse.core.exceptions import EventValidationError, UnauthorizedError
from sitepulse.core.limiter import limiter
from sitepulse.db.session import get_db
from sitepulse.schemas.event import IngestResponse
from sitepulse.services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ingest", response_model=IngestResponse)
@limiter.limit(f"{settings.INGEST_RATE_LIMIT_PER_MINUTE}/minute")
async def ingest_event(
    request: Request,
    api_key: str | None = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db),
):
    """Record one pageview. Authenticated via ``Authorization: Bearer <site API key>``.

    The JSON body carries ``site_id``, ``event_type``, ``page_url``,
    ``referrer``, ``user_agent`` and ``session_id``. Responds 401 without a
    bearer credential, 404 for an unknown site / key pair, 400 for an
    unconfigured site or a malformed body.
    """
    if not api_key:
        raise UnauthorizedError("Missing or invalid authorization header")

    try:
        body = await request.json()
    except ValueError:
        raise EventValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise EventValidationError("Request body must be a JSON object")

    service = IngestionService(db)
    await service.ingest(body.get("site_id"), api_key, body)
    return IngestResponse()
