from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

PAGEVIEW = "pageview"


class PageviewIn(BaseModel):
    """Body of a tracker request, validated at the ingestion boundary.

    ``site_id`` is consumed by authentication before this model is built;
    client-computed ``browser`` / ``os`` / ``device`` values are ignored and
    derived server-side instead.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    event_type: Literal["pageview"] = PAGEVIEW
    page_url: str = Field(..., min_length=1, max_length=8192)
    referrer: str | None = Field(None, max_length=8192)
    user_agent: str = Field(..., min_length=1, max_length=2048)
    session_id: str = Field(..., min_length=1, max_length=128)
    country: str | None = Field(None, max_length=64)
    city: str | None = Field(None, max_length=128)

    @field_validator("referrer", "country", "city")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        return v or None


class IngestResponse(BaseModel):
    """Acknowledgement returned to the tracker."""

    success: bool = True


class AnalyticsEventData(BaseModel):
    """A single pageview as read from or written to a tenant store."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    created_at: datetime | None = None
    site_id: str
    event_type: str = PAGEVIEW
    page_url: str
    referrer: str | None = None
    user_agent: str | None = None
    country: str | None = None
    city: str | None = None
    browser: str | None = None
    os: str | None = None
    device: str | None = None
    session_id: str
