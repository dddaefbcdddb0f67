from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.api.deps import get_current_owner
from sitepulse.core.config import settings
from sitepulse.core.limiter import limiter
from sitepulse.db.session import get_db
from sitepulse.models.tenant import Tenant
from sitepulse.schemas.tenant import (
    StoreCredentials,
    TenantCreate,
    TenantCreateResponse,
    TenantResponse,
    TenantUpdate,
)
from sitepulse.services.tenant_service import TenantService

router = APIRouter()


def _with_key(tenant: Tenant, api_key: str) -> TenantCreateResponse:
    return TenantCreateResponse(
        **TenantResponse.model_validate(tenant).model_dump(), api_key=api_key
    )


@router.post("/", response_model=TenantCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def create_tenant(
    request: Request,
    data: TenantCreate,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Onboard a new site. The API key is returned once and never again."""
    service = TenantService(db)
    tenant, api_key = await service.create(owner_id=owner_id, data=data)
    return _with_key(tenant, api_key)


@router.get("/", response_model=list[TenantResponse])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def list_tenants(
    request: Request,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """List all sites of the current owner."""
    service = TenantService(db)
    return await service.list_by_owner(owner_id=owner_id)


@router.get("/{tenant_id}", response_model=TenantResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_tenant(
    request: Request,
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Get a specific site by ID."""
    service = TenantService(db)
    return await service.get(tenant_id=tenant_id, owner_id=owner_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def update_tenant(
    request: Request,
    tenant_id: str,
    data: TenantUpdate,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Update a site's name or origin URL."""
    service = TenantService(db)
    return await service.update(tenant_id=tenant_id, owner_id=owner_id, data=data)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def delete_tenant(
    request: Request,
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Delete a site together with all of its stored events."""
    service = TenantService(db)
    await service.delete(tenant_id=tenant_id, owner_id=owner_id)
    return None


@router.post("/{tenant_id}/rotate-key", response_model=TenantCreateResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def rotate_api_key(
    request: Request,
    tenant_id: str,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Rotate the API key for a site."""
    service = TenantService(db)
    tenant, api_key = await service.rotate_api_key(tenant_id=tenant_id, owner_id=owner_id)
    return _with_key(tenant, api_key)


@router.put("/{tenant_id}/store", response_model=TenantResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def attach_store(
    request: Request,
    tenant_id: str,
    data: StoreCredentials,
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Verify a site's own store and mark the site as configured."""
    service = TenantService(db)
    return await service.attach_store(tenant_id=tenant_id, owner_id=owner_id, credentials=data)
