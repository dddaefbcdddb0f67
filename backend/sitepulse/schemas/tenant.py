from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TenantCreate(BaseModel):
    """Schema for onboarding a new site."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)


class TenantUpdate(BaseModel):
    """Schema for updating a site."""

    name: str | None = Field(None, min_length=1, max_length=255)
    url: str | None = Field(None, min_length=1, max_length=2048)


class StoreCredentials(BaseModel):
    """Connection info for a site's own analytics store."""

    store_url: str = Field(..., min_length=1, max_length=2048)
    store_key: str = Field(..., min_length=1)
    create_schema: bool = True


class TenantResponse(BaseModel):
    """Site as shown to its owner: key prefix only, never store secrets."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    url: str
    api_key_prefix: str
    store_url: str | None
    is_configured: bool
    owner_id: str
    created_at: datetime
    updated_at: datetime


class TenantCreateResponse(TenantResponse):
    """Response for create and rotate, with the plaintext key (shown once)."""

    api_key: str
