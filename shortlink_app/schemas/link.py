from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from shortlink_app.config import settings
from shortlink_app.models.link import LinkStatus


class LinkBase(BaseModel):
    long_link: str = Field(..., description="Destination URL")
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class LinkCreate(LinkBase):
    user_id: str = Field(..., description="Owner reference (opaque)")
    short_code: Optional[str] = Field(
        None, description="Custom code; generated when omitted"
    )


class LinkUpdate(BaseModel):
    """
    Partial update. Only fields present in the request are applied,
    so leaving a field out never clears it.
    """
    long_link: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    short_code: Optional[str] = None


class LinkStatusUpdate(BaseModel):
    status: LinkStatus


class LinkResponse(LinkBase):
    """Response schema that serializes the SQLAlchemy Link model

    - from_attributes=True enables ORM mode (reads from model attributes)
    - @computed_field creates the clickable URL from the stored short link
    """
    id: str
    user_id: str
    short_link: str
    status: LinkStatus
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.public_scheme}://{self.short_link}"

    model_config = ConfigDict(from_attributes=True)


class LinkWithClicks(LinkResponse):
    clicks: int = 0


class LinkSnapshot(BaseModel):
    """What the redirect path needs; also the cached representation"""
    id: str
    long_link: str
    status: LinkStatus

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_frozen(self) -> bool:
        return self.status == LinkStatus.FROZEN
