"""StagedMedia model."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid

from creative_review.database import Base


class StagedMedia(Base):
    """An image uploaded ahead of a comment, waiting to be attached or to expire."""

    __tablename__ = "staged_media"

    id = Column(Uuid, primary_key=True, default=uuid4)
    owner_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path = Column(String(1024), nullable=False)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation of StagedMedia."""
        return f"<StagedMedia(id={self.id}, owner_id={self.owner_id}, filename={self.filename})>"
