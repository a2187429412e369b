"""ApprovalLog model."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from creative_review.database import Base


class ApprovalAction(str, enum.Enum):
    """Decisions recorded in the approval audit trail."""

    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


class ApprovalLog(Base):
    """Append-only audit record of an approval decision."""

    __tablename__ = "approval_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    asset_id = Column(
        Uuid,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_version = Column(Integer, nullable=False)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(String(50), nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    asset = relationship("Asset", back_populates="approval_logs")
    user = relationship("User")

    def __repr__(self) -> str:
        """String representation of ApprovalLog."""
        return (
            f"<ApprovalLog("
            f"asset_id={self.asset_id}, "
            f"asset_version={self.asset_version}, "
            f"action={self.action})>"
        )
