"""Comment, comment attachment and mention models."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text, Uuid
from sqlalchemy.orm import relationship

from creative_review.database import Base, JSONType

comment_mentions = Table(
    "comment_mentions",
    Base.metadata,
    Column("comment_id", Uuid, ForeignKey("comments.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Comment(Base):
    """Review remark, optionally anchored to a region, time or page of one version."""

    __tablename__ = "comments"

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
    parent_id = Column(
        Uuid,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    content = Column(Text, nullable=False)
    rectangle = Column(JSONType, nullable=True)  # {"x": .., "y": .., "width": .., "height": ..}
    video_timestamp = Column(Float, nullable=True)
    page_number = Column(Integer, nullable=True)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_by = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
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
    asset = relationship("Asset", back_populates="comments")
    user = relationship("User", foreign_keys=[user_id])
    resolver = relationship("User", foreign_keys=[resolved_by])
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship(
        "Comment",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
    mentions = relationship("User", secondary=comment_mentions)
    attachments = relationship("CommentAttachment", back_populates="comment", cascade="all, delete-orphan")

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def formatted_timestamp(self) -> str | None:
        """Video timestamp as MM:SS."""
        if self.video_timestamp is None:
            return None
        minutes, seconds = divmod(int(self.video_timestamp), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def __repr__(self) -> str:
        """String representation of Comment."""
        return f"<Comment(id={self.id}, asset_id={self.asset_id}, asset_version={self.asset_version})>"


class CommentAttachment(Base):
    """Image attached to a comment, promoted from staged media."""

    __tablename__ = "comment_attachments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    comment_id = Column(
        Uuid,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path = Column(String(1024), nullable=False)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    comment = relationship("Comment", back_populates="attachments")

    def __repr__(self) -> str:
        """String representation of CommentAttachment."""
        return f"<CommentAttachment(comment_id={self.comment_id}, filename={self.filename})>"
