"""Notification model (in-app inbox)."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from creative_review.database import Base, JSONType


class NotificationKind(str, enum.Enum):
    """Events that produce notifications."""

    COMMENT_CREATED = "comment_created"
    COMMENT_REPLY = "comment_reply"
    MENTION = "mention"
    ASSET_UPLOADED = "asset_uploaded"
    NEW_VERSION = "new_version"
    ASSET_APPROVED = "asset_approved"
    REVISION_REQUESTED = "revision_requested"
    SENT_TO_CLIENT = "sent_to_client"
    REQUEST_ASSIGNED = "request_assigned"
    REQUEST_STATUS_CHANGED = "request_status_changed"


class Notification(Base):
    """A notification delivered to one user's in-app inbox."""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(String(50), nullable=False)
    payload = Column(JSONType, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # Relationships
    user = relationship("User")

    def __repr__(self) -> str:
        """String representation of Notification."""
        return f"<Notification(id={self.id}, user_id={self.user_id}, kind={self.kind})>"
