import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlalchemy.orm import relationship

from shortlink_app.database.connection import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class LinkStatus(str, enum.Enum):
    """Governs redirect behaviour"""
    ACTIVE = "active"
    FROZEN = "frozen"


class Link(Base):
    """
    Short-link to destination mapping.

    ``short_link`` holds the full ``<domain>/s/<code>`` string and is the
    unique key for redirect resolution. The unique constraint is the
    authoritative collision guard; the registry's retry loop only makes
    hitting it unlikely.
    """
    __tablename__ = "links"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, index=True)
    long_link = Column(Text, nullable=False)
    short_link = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)
    status = Column(String(16), nullable=False, default=LinkStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    activities = relationship(
        "Activity",
        back_populates="link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_frozen(self) -> bool:
        return self.status == LinkStatus.FROZEN.value

    def __repr__(self):
        return f"<Link {self.id} {self.short_link} ({self.status})>"
