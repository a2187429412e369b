"""Comment schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from creative_review.schemas.auth import UserSummary


class CommentCreate(BaseModel):
    """Schema for creating a comment or reply.

    Annotation fields are checked against the asset type by the review
    engine, so they are only loosely typed here.
    """

    content: str = Field(..., min_length=1)
    rectangle: Optional[dict[str, Any]] = Field(None, description="{x, y, width, height}, each in [0, 1]")
    video_timestamp: Optional[float] = Field(None, description="Seconds from the start of a video")
    page_number: Optional[int] = Field(None, description="1-based PDF page")
    parent_id: Optional[UUID] = Field(None, description="Comment being replied to")
    media_ids: list[UUID] = Field(default_factory=list, description="Staged media to attach")


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    filename: str
    mime_type: str
    size: int


class CommentResponse(BaseModel):
    """Schema for returning a comment with its replies."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_id: UUID
    asset_version: int
    user: UserSummary
    parent_id: Optional[UUID] = None
    content: str
    rectangle: Optional[dict[str, float]] = None
    video_timestamp: Optional[float] = None
    formatted_timestamp: Optional[str] = None
    page_number: Optional[int] = None
    is_resolved: bool
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    mentions: list[UserSummary] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    replies: list["CommentResponse"] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MentionableUserResponse(UserSummary):
    email: str
