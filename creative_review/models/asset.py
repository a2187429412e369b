"""Asset, asset version and lock event models."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from creative_review.database import Base, JSONType


class AssetStatus(str, enum.Enum):
    """Review states of an asset."""

    PENDING_REVIEW = "pending_review"
    IN_REVIEW = "in_review"
    CLIENT_REVIEW = "client_review"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


class AssetType(str, enum.Enum):
    """Kinds of creative work an asset can hold."""

    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    DESIGN = "design"


# States a reviewer account is allowed to see
CLIENT_VISIBLE_STATUSES = frozenset(
    {AssetStatus.CLIENT_REVIEW.value, AssetStatus.APPROVED.value, AssetStatus.REVISION_REQUESTED.value}
)


request_assets = Table(
    "request_assets",
    Base.metadata,
    Column("request_id", Uuid, ForeignKey("creative_requests.id", ondelete="CASCADE"), primary_key=True),
    Column("asset_id", Uuid, ForeignKey("assets.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    ),
)


class Asset(Base):
    """A unit of creative work under review."""

    __tablename__ = "assets"
    __table_args__ = (CheckConstraint("current_version >= 1", name="ck_assets_current_version_positive"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False)
    status = Column(String(50), default=AssetStatus.PENDING_REVIEW.value, nullable=False, index=True)
    current_version = Column(Integer, default=1, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    locked_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
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
    project = relationship("Project", backref="assets")
    uploader = relationship("User", foreign_keys=[uploaded_by])
    locker = relationship("User", foreign_keys=[locked_by])
    versions = relationship(
        "AssetVersion",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="AssetVersion.version_number",
    )
    comments = relationship("Comment", back_populates="asset", cascade="all, delete-orphan")
    approval_logs = relationship("ApprovalLog", back_populates="asset", cascade="all, delete-orphan")
    lock_events = relationship("AssetLockEvent", back_populates="asset", cascade="all, delete-orphan")
    requests = relationship("CreativeRequest", secondary=request_assets, back_populates="assets")

    def __repr__(self) -> str:
        """String representation of Asset."""
        return f"<Asset(id={self.id}, title={self.title}, status={self.status}, v={self.current_version})>"


class AssetVersion(Base):
    """Immutable snapshot of the file uploaded as one version of an asset."""

    __tablename__ = "asset_versions"
    __table_args__ = (UniqueConstraint("asset_id", "version_number", name="uq_asset_versions_asset_version"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    asset_id = Column(
        Uuid,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version_number = Column(Integer, nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_url = Column(String(1024), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    file_meta = Column(JSONType, nullable=True)  # {"original_name": ..., "mime_type": ..., "extension": ...}
    version_notes = Column(Text, nullable=True)
    uploaded_by = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    asset = relationship("Asset", back_populates="versions")
    uploader = relationship("User")

    def __repr__(self) -> str:
        """String representation of AssetVersion."""
        return f"<AssetVersion(asset_id={self.asset_id}, version_number={self.version_number})>"


class AssetLockEvent(Base):
    """Append-only record of an asset being locked or unlocked."""

    __tablename__ = "asset_lock_events"

    id = Column(Uuid, primary_key=True, default=uuid4)
    asset_id = Column(
        Uuid,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    action = Column(String(20), nullable=False)  # locked, unlocked
    reason = Column(String(500), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    asset = relationship("Asset", back_populates="lock_events")
    user = relationship("User")

    def __repr__(self) -> str:
        """String representation of AssetLockEvent."""
        return f"<AssetLockEvent(asset_id={self.asset_id}, action={self.action})>"
