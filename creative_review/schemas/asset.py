"""Asset schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetResponse(BaseModel):
    """Schema for returning asset information."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique identifier of the asset")
    project_id: UUID = Field(..., description="ID of the project that owns the asset")
    uploaded_by: UUID = Field(..., description="ID of the user who created the asset")
    title: str
    description: Optional[str] = None
    type: str = Field(..., description="Asset type: image, video, pdf or design")
    status: str = Field(..., description="Review status")
    current_version: int
    is_locked: bool
    locked_by: Optional[UUID] = None
    locked_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AssetVersionResponse(BaseModel):
    """Schema for one uploaded version."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_id: UUID
    version_number: int
    file_url: str
    file_size: int
    file_meta: Optional[dict] = None
    version_notes: Optional[str] = None
    uploaded_by: UUID
    created_at: datetime


class AssetDetailResponse(AssetResponse):
    """Asset with all of its versions."""

    versions: list[AssetVersionResponse] = Field(default_factory=list)


class ApprovalLogResponse(BaseModel):
    """Schema for an approval decision."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_id: UUID
    asset_version: int
    user_id: UUID
    action: str
    comment: Optional[str] = None
    created_at: datetime


class LockEventResponse(BaseModel):
    """Schema for a lock or unlock event."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asset_id: UUID
    user_id: UUID
    action: str
    reason: Optional[str] = None
    created_at: datetime


class HistoryEntryResponse(BaseModel):
    """One entry of an asset's history."""

    kind: str = Field(..., description="version, approval or lock")
    created_at: datetime
    data: AssetVersionResponse | ApprovalLogResponse | LockEventResponse


class ApproveRequest(BaseModel):
    """Body of an approval."""

    comment: Optional[str] = Field(None, max_length=5000)


class RevisionRequest(BaseModel):
    """Body of a revision request. Feedback is mandatory."""

    comment: str = Field(..., max_length=5000)

    @field_validator("comment", mode="before")
    @classmethod
    def normalize_comment(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class LockRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class LinkRequestBody(BaseModel):
    request_id: UUID


class ViewResponse(AssetDetailResponse):
    """Asset detail returned by a view, with whether the view started the review."""

    review_started: bool = False
