"""Turn a tenant's stored connection info into an explicit store handle.

Nothing here touches the network. The handle is passed to the event store
adapter per call, so no store client is ever shared between tenants.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from sitepulse.core.config import settings
from sitepulse.core.exceptions import TenantNotConfiguredError
from sitepulse.models.tenant import Tenant

logger = logging.getLogger(__name__)

_POSTGRES_ALIASES = {"postgres", "postgresql"}
_HTTP_SCHEMES = {"http", "https"}


@dataclass(frozen=True)
class StoreHandle:
    """Everything the adapter needs to reach one tenant's store."""

    tenant_id: str
    url: str
    secret: str

    def __repr__(self) -> str:
        return f"StoreHandle(tenant_id={self.tenant_id!r}, url={self.url!r}, secret='***')"


def _from_host(netloc: str, path: str) -> URL:
    parts = urlsplit(f"//{netloc}")
    if not parts.hostname:
        raise ValueError("store URL has no host")
    return URL.create(
        settings.STORE_DEFAULT_DRIVER,
        username=parts.username,
        host=parts.hostname,
        port=parts.port,
        database=path.strip("/") or None,
    )


def normalize_store_url(raw: str) -> str:
    """Canonical SQLAlchemy URL for a store, without a password.

    The secret travels separately in ``StoreHandle.secret``.

    Accepts a bare host (``db.example.com:5432/analytics``), an ``http(s)://``
    URL, a ``postgres://`` URL or a full SQLAlchemy URL. SQLite URLs pass
    through unchanged. Normalizing a canonical URL returns it unchanged.

    Raises:
        ValueError: If no usable URL can be derived.
    """
    text = raw.strip()
    if not text:
        raise ValueError("store URL is empty")

    if "://" not in text:
        netloc, _, path = text.partition("/")
        url = _from_host(netloc, path)
    else:
        scheme = text.split("://", 1)[0].lower()
        if scheme in _HTTP_SCHEMES:
            parts = urlsplit(text)
            url = _from_host(parts.netloc, parts.path)
        else:
            try:
                url = make_url(text)
            except ArgumentError as e:
                raise ValueError(f"unparseable store URL: {e}") from None
            if url.drivername in _POSTGRES_ALIASES:
                url = url.set(drivername=settings.STORE_DEFAULT_DRIVER)

    if url.get_backend_name() == "sqlite":
        return url.render_as_string(hide_password=False)

    if not url.host:
        raise ValueError("store URL has no host")
    canonical = URL.create(
        url.drivername,
        username=url.username or settings.STORE_DEFAULT_USER,
        host=url.host,
        port=url.port,
        database=(url.database or "").strip("/") or settings.STORE_DEFAULT_DATABASE,
        query=url.query,
    )
    return canonical.render_as_string(hide_password=False)


def resolve_store_handle(tenant: Tenant) -> StoreHandle:
    """Validate a tenant's store configuration and package it as a handle.

    Raises:
        TenantNotConfiguredError: If the tenant is not configuration-complete,
            either credential is empty, or the URL cannot be normalized.
    """
    if not tenant.is_queryable:
        raise TenantNotConfiguredError()
    try:
        url = normalize_store_url(tenant.store_url or "")
    except ValueError as e:
        logger.warning("Site %s has an unusable store URL: %s", tenant.id, e)
        raise TenantNotConfiguredError() from None
    return StoreHandle(tenant_id=tenant.id, url=url, secret=tenant.store_key or "")
