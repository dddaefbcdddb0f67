import uuid

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sitepulse.db.base import Base
from sitepulse.models.base import TimestampMixin


class Tenant(Base, TimestampMixin):
    """One onboarded website. Its events live in its own store, not here."""

    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    api_key_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    api_key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    store_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    store_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_configured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def is_queryable(self) -> bool:
        return bool(self.is_configured and self.store_url and self.store_key)
