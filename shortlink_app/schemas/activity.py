from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClickContext(BaseModel):
    """
    Request metadata captured for one redirect.

    Built by the redirect route from headers and handed to the resolver,
    which passes it on to the activity recorder.
    """

    ip: str = Field("unknown", description="Client IP address or 'unknown'")
    device: Optional[str] = Field(None, description="Device class (mobile, tablet, desktop)")
    origin: Optional[str] = Field(None, description="Referer or 'direct'")
    fingerprint: Optional[str] = Field(None, description="Opaque visitor token")
    user_agent: Optional[str] = Field(None, description="Raw User-Agent header")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ip": "192.168.1.1",
                "device": "desktop",
                "origin": "https://twitter.com",
                "fingerprint": "c0ffee42",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
            }
        }
    )


class ActivityResponse(BaseModel):
    id: str
    link_id: str
    ip: str
    fingerprint: Optional[str] = None
    device: Optional[str] = None
    origin: Optional[str] = None
    clicked_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityFilter(BaseModel):
    """
    Optional per-field filters, combined with AND.
    A filter left as None is not applied at all.
    """
    link_id: Optional[str] = None
    device: Optional[str] = None
    fingerprint: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: int = Field(50, ge=1, le=1000)
    offset: int = Field(0, ge=0)


class ActivityPage(BaseModel):
    items: List[ActivityResponse]
    total: int
