"""CreativeRequest model."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from creative_review.database import Base
from creative_review.models.asset import request_assets


class RequestStatus(str, enum.Enum):
    """Lifecycle of a creative request."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ASSET_SUBMITTED = "asset_submitted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RequestPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Requests in these states are never touched by automatic transitions
CLOSED_REQUEST_STATUSES = frozenset({RequestStatus.COMPLETED.value, RequestStatus.CANCELLED.value})


class CreativeRequest(Base):
    """A unit of requested creative work that assets can be linked to."""

    __tablename__ = "creative_requests"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    assigned_to = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(50), default=RequestStatus.PENDING.value, nullable=False, index=True)
    priority = Column(String(20), default=RequestPriority.NORMAL.value, nullable=False)
    deadline = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    project = relationship("Project", backref="creative_requests")
    creator = relationship("User", foreign_keys=[created_by])
    assignee = relationship("User", foreign_keys=[assigned_to])
    assets = relationship("Asset", secondary=request_assets, back_populates="requests")

    def __repr__(self) -> str:
        """String representation of CreativeRequest."""
        return f"<CreativeRequest(id={self.id}, title={self.title}, status={self.status})>"
