"""Uniform read/write access to a tenant's own analytics store.

This is the only module that knows how a store is physically reached. Every
call site opens a store for one ``StoreHandle`` and gets an ``EventStore``
bound to that tenant alone; the engine is disposed when the block exits.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, inspect, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from sitepulse.core.config import settings
from sitepulse.core.exceptions import StoreError, StoreReadError, StoreWriteError
from sitepulse.db.base import StoreBase
from sitepulse.models.event import EVENTS_TABLE, EXPECTED_COLUMNS, AnalyticsEventRow
from sitepulse.schemas.event import AnalyticsEventData
from sitepulse.services.credentials import StoreHandle

logger = logging.getLogger(__name__)

# Failures that mean "the store is unreachable or answered with garbage"
STORE_ERRORS = (SQLAlchemyError, OSError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(dt: datetime) -> datetime:
    """Bind values are always UTC so naive-storage backends compare correctly."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def create_store_engine(handle: StoreHandle) -> AsyncEngine:
    """Build an async engine for one store; the secret becomes the password."""
    try:
        url = make_url(handle.url)
        connect_args: dict = {}
        if url.get_backend_name() != "sqlite":
            url = url.set(password=handle.secret)
        if url.drivername == "postgresql+asyncpg":
            connect_args["timeout"] = settings.STORE_CONNECT_TIMEOUT
        return create_async_engine(url, pool_pre_ping=True, connect_args=connect_args)
    except (ArgumentError, ImportError) as e:
        logger.error("Cannot build store engine for site %s: %s", handle.tenant_id, e)
        raise StoreError("Unsupported analytics store") from None


class EventStore:
    """Event operations against one tenant's store."""

    def __init__(
        self,
        handle: StoreHandle,
        engine: AsyncEngine,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.handle = handle
        self.engine = engine
        self._clock = clock
        self._sessionmaker = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    def _check_tenant(self, tenant_id: str) -> None:
        if tenant_id != self.handle.tenant_id:
            raise ValueError("store handle belongs to a different site")

    @staticmethod
    def _to_data(row: AnalyticsEventRow) -> AnalyticsEventData:
        data = AnalyticsEventData.model_validate(row)
        if data.created_at is not None and data.created_at.tzinfo is None:
            data.created_at = data.created_at.replace(tzinfo=timezone.utc)
        return data

    async def write(self, event: AnalyticsEventData) -> AnalyticsEventData:
        """Persist one event, assigning its id and created timestamp when absent.

        Raises:
            StoreWriteError: If the store rejects the write; nothing is persisted.
        """
        self._check_tenant(event.site_id)
        stored = event.model_copy(
            update={
                "id": event.id or str(uuid.uuid4()),
                "created_at": _to_utc(event.created_at or self._clock()),
            }
        )
        row = AnalyticsEventRow(**stored.model_dump())
        try:
            async with self._sessionmaker.begin() as session:
                session.add(row)
        except STORE_ERRORS as e:
            logger.warning("Store write failed for site %s: %s", self.handle.tenant_id, e)
            raise StoreWriteError() from None
        return stored

    def _window_query(self, tenant_id: str, start: datetime, end: datetime):
        return (
            select(AnalyticsEventRow)
            .where(
                AnalyticsEventRow.site_id == tenant_id,
                AnalyticsEventRow.created_at >= _to_utc(start),
                AnalyticsEventRow.created_at < _to_utc(end),
            )
            .order_by(AnalyticsEventRow.created_at.asc(), AnalyticsEventRow.id.asc())
        )

    async def iter_events(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> AsyncIterator[AnalyticsEventData]:
        """Stream a tenant's events in ``[start, end)``, oldest first, in fetch batches.

        Raises:
            StoreReadError: If the store cannot be read.
        """
        self._check_tenant(tenant_id)
        stmt = self._window_query(tenant_id, start, end).execution_options(
            yield_per=settings.STORE_FETCH_BATCH_SIZE
        )
        try:
            async with self._sessionmaker() as session:
                result = await session.stream_scalars(stmt)
                async for row in result:
                    yield self._to_data(row)
        except STORE_ERRORS as e:
            logger.warning("Store read failed for site %s: %s", self.handle.tenant_id, e)
            raise StoreReadError() from None

    async def query(
        self, tenant_id: str, start: datetime, end: datetime
    ) -> list[AnalyticsEventData]:
        """Materialized form of ``iter_events``."""
        return [event async for event in self.iter_events(tenant_id, start, end)]

    async def delete_events(self, tenant_id: str) -> int:
        """Delete every event of a tenant. Only used when the tenant itself is deleted.

        Raises:
            StoreWriteError: If the store rejects the delete.
        """
        self._check_tenant(tenant_id)
        try:
            async with self._sessionmaker.begin() as session:
                result = await session.execute(
                    delete(AnalyticsEventRow).where(AnalyticsEventRow.site_id == tenant_id)
                )
        except STORE_ERRORS as e:
            logger.warning("Store delete failed for site %s: %s", self.handle.tenant_id, e)
            raise StoreWriteError("Unable to delete analytics data") from None
        return result.rowcount or 0

    async def ensure_schema(self) -> None:
        """Create the events table and its indexes if they do not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(StoreBase.metadata.create_all)
        except STORE_ERRORS as e:
            logger.warning("Schema setup failed for site %s: %s", self.handle.tenant_id, e)
            raise StoreWriteError("Failed to set up analytics store") from None

    async def verify_schema(self) -> None:
        """Check connectivity and that the events table has every expected column.

        Raises:
            StoreReadError: If the store is unreachable or the schema is incomplete.
        """

        def _column_names(sync_conn) -> set[str]:
            return {c["name"] for c in inspect(sync_conn).get_columns(EVENTS_TABLE)}

        try:
            async with self.engine.connect() as conn:
                columns = await conn.run_sync(_column_names)
        except STORE_ERRORS as e:
            logger.warning("Schema check failed for site %s: %s", self.handle.tenant_id, e)
            raise StoreReadError("Failed to connect to analytics store") from None

        missing = EXPECTED_COLUMNS - columns
        if missing:
            logger.warning(
                "Site %s store is missing columns: %s", self.handle.tenant_id, sorted(missing)
            )
            raise StoreReadError("Analytics store schema is incomplete")


@asynccontextmanager
async def open_event_store(
    handle: StoreHandle, *, clock: Callable[[], datetime] = _utcnow
) -> AsyncIterator[EventStore]:
    """Open the store behind ``handle`` for the duration of the block."""
    engine = create_store_engine(handle)
    try:
        yield EventStore(handle, engine, clock=clock)
    finally:
        await engine.dispose()
