from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from shortlink_app.database.connection import Base
from shortlink_app.models.link import new_id, utcnow


class Activity(Base):
    """
    One recorded click on a link.

    Rows are append-only. They are only ever removed in bulk together with
    (or right before) the owning link.
    """
    __tablename__ = "activities"

    id = Column(String(32), primary_key=True, default=new_id)
    link_id = Column(
        String(32),
        ForeignKey("links.id", ondelete="CASCADE"),
        nullable=False,
    )
    ip = Column(String(64), nullable=False, default="unknown")  # IPv4, IPv6 or "unknown"
    fingerprint = Column(String(255), nullable=True)
    device = Column(String(32), nullable=True)
    origin = Column(String(2048), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    link = relationship("Link", back_populates="activities")

    # Composite index for per-link time window queries
    __table_args__ = (
        Index("ix_activities_link_id_clicked_at", "link_id", "clicked_at"),
    )

    def __repr__(self):
        return f"<Activity {self.id} link={self.link_id} at={self.clicked_at}>"
