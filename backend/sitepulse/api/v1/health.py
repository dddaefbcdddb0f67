import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import ServiceUnavailableError
from sitepulse.core.redis import ping_redis
from sitepulse.db.session import get_db
from sitepulse.schemas.common import MessageResponse, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=MessageResponse)
async def health_check():
    """Liveness: the process is up. Touches nothing else."""
    return {"message": "healthy"}


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness: the site directory and Redis both answer.

    Tenant stores are not probed; one unreachable customer database must not
    take the whole service out of rotation. Failures are logged and reported
    as a bare 503 without connection details.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.error("Readiness check failed: site directory unreachable")
        raise ServiceUnavailableError(detail="Service not ready") from None

    if not await ping_redis():
        logger.error("Readiness check failed: redis unavailable")
        raise ServiceUnavailableError(detail="Service not ready")

    return ReadinessResponse(checks={"directory": "ok", "redis": "ok"})
