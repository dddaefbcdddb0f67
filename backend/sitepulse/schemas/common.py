from typing import Literal

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str


class ReadinessResponse(BaseModel):
    """Readiness probe result, one entry per backing service."""

    message: Literal["ready"] = "ready"
    checks: dict[str, Literal["ok"]]
