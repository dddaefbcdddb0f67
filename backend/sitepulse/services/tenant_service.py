import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from sitepulse.core.security import (
    API_KEY_DISPLAY_CHARS,
    generate_api_key,
    hash_api_key,
    verify_api_key,
)
from sitepulse.models.tenant import Tenant
from sitepulse.schemas.tenant import StoreCredentials, TenantCreate, TenantUpdate
from sitepulse.services.credentials import (
    StoreHandle,
    normalize_store_url,
    resolve_store_handle,
)
from sitepulse.services.event_store import open_event_store

logger = logging.getLogger(__name__)


class TenantService:
    """Tenant directory: lookups for ingestion plus owner-scoped site management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Directory lookups ---

    async def lookup_by_id(self, tenant_id: str) -> Tenant | None:
        """Get a site by id, or None."""
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    async def lookup_by_api_key(self, tenant_id: str, api_key: str) -> Tenant | None:
        """Get a site only if both its id and API key match.

        An unknown id and a wrong key both return None, so the caller cannot
        tell them apart.
        """
        tenant = await self.lookup_by_id(tenant_id)
        if tenant is None or not verify_api_key(api_key, tenant.api_key_hash):
            return None
        return tenant

    # --- Site management ---

    async def create(self, owner_id: str, data: TenantCreate) -> tuple[Tenant, str]:
        """Create a new site with an auto-generated API key.

        Returns (tenant, plaintext_key). Only the SHA-256 hash of the key is
        persisted.
        """
        plaintext_key = generate_api_key()
        tenant = Tenant(
            owner_id=owner_id,
            name=data.name,
            url=data.url,
            api_key_hash=hash_api_key(plaintext_key),
            api_key_prefix=plaintext_key[:API_KEY_DISPLAY_CHARS],
            is_configured=False,
        )
        self.db.add(tenant)
        await self.db.flush()
        await self.db.refresh(tenant)
        logger.info("Created site %s for owner %s", tenant.id, owner_id)
        return tenant, plaintext_key

    async def get(self, tenant_id: str, owner_id: str) -> Tenant:
        """Get a site by id, ensuring it belongs to the owner."""
        tenant = await self.lookup_by_id(tenant_id)
        if not tenant:
            raise NotFoundError("Site not found")
        if tenant.owner_id != owner_id:
            raise ForbiddenError("Not authorized to access this site")
        return tenant

    async def list_by_owner(self, owner_id: str) -> list[Tenant]:
        """List all sites of an owner, newest first."""
        result = await self.db.execute(
            select(Tenant).where(Tenant.owner_id == owner_id).order_by(Tenant.created_at.desc())
        )
        return list(result.scalars().all())

    async def update(self, tenant_id: str, owner_id: str, data: TenantUpdate) -> Tenant:
        """Update a site's display fields."""
        tenant = await self.get(tenant_id, owner_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in update_data.items():
            setattr(tenant, field, value)
        await self.db.flush()
        await self.db.refresh(tenant)
        return tenant

    async def rotate_api_key(self, tenant_id: str, owner_id: str) -> tuple[Tenant, str]:
        """Replace a site's API key. The old key stops working immediately."""
        tenant = await self.get(tenant_id, owner_id)
        plaintext_key = generate_api_key()
        tenant.api_key_hash = hash_api_key(plaintext_key)
        tenant.api_key_prefix = plaintext_key[:API_KEY_DISPLAY_CHARS]
        await self.db.flush()
        await self.db.refresh(tenant)
        logger.info("Rotated API key for site %s", tenant.id)
        return tenant, plaintext_key

    async def attach_store(
        self, tenant_id: str, owner_id: str, credentials: StoreCredentials
    ) -> Tenant:
        """Verify a store and attach it to the site.

        The URL is normalized first; the store must accept a connection and
        expose the events schema (created on the way when ``create_schema``).
        Credentials are saved only after verification succeeds.

        Raises:
            BadRequestError: If the URL cannot be normalized.
            StoreError: If the store is unreachable or its schema is incomplete.
        """
        tenant = await self.get(tenant_id, owner_id)
        try:
            url = normalize_store_url(credentials.store_url)
        except ValueError as e:
            raise BadRequestError(f"Invalid store URL: {e}") from None

        handle = StoreHandle(tenant_id=tenant.id, url=url, secret=credentials.store_key)
        async with open_event_store(handle) as store:
            if credentials.create_schema:
                await store.ensure_schema()
            await store.verify_schema()

        tenant.store_url = url
        tenant.store_key = credentials.store_key
        tenant.is_configured = True
        await self.db.flush()
        await self.db.refresh(tenant)
        logger.info("Attached store %s to site %s", url, tenant.id)
        return tenant

    async def delete(self, tenant_id: str, owner_id: str) -> None:
        """Delete a site and every event it has in its own store.

        Store events go first; if that fails the directory row is kept so the
        deletion can be retried.
        """
        tenant = await self.get(tenant_id, owner_id)
        if tenant.is_queryable:
            handle = resolve_store_handle(tenant)
            async with open_event_store(handle) as store:
                removed = await store.delete_events(tenant.id)
            logger.info("Deleted %d events from store of site %s", removed, tenant.id)
        await self.db.delete(tenant)
        await self.db.flush()
