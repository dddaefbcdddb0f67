from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import UnauthorizedError
from sitepulse.core.security import owner_id_from_token
from sitepulse.db.session import get_db
from sitepulse.models.tenant import Tenant
from sitepulse.services.tenant_service import TenantService

# auto_error=False so missing credentials surface as our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Raw bearer token from the Authorization header, or None."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials or None


async def get_current_owner(token: str | None = Depends(get_bearer_token)) -> str:
    """Owner id from a dashboard access token issued by the identity service."""
    if not token:
        raise UnauthorizedError("Not authenticated")
    owner_id = owner_id_from_token(token)
    if owner_id is None:
        raise UnauthorizedError("Invalid token")
    return owner_id


async def get_owned_tenant(
    tenant_id: str,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    """The site named in the path, if it belongs to the current owner."""
    return await TenantService(db).get(tenant_id=tenant_id, owner_id=owner_id)
